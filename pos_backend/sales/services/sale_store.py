# sales/services/sale_store.py

"""
DJANGO SALE STORE

Commits a FinalizedSale as ONE logical write:
    Sale + SaleItem[] + SalePayment[] (+ AccountsReceivable for credit)

Everything runs inside a single transaction.atomic block: either all rows
exist afterwards or none do. Any database error surfaces as PersistenceFailed.
"""

from __future__ import annotations

import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from business.models import Location
from business.services.config import due_date_for
from sales.models import AccountsReceivable, Customer, Sale, SaleItem, SalePayment
from sales.services.checkout_session import FinalizedSale
from sales.services.exceptions import (
    CustomerRequiredForCredit,
    LocationRequired,
    PersistenceFailed,
)
from sales.services.totals import quantize_money

logger = logging.getLogger(__name__)

RECEIPT_NUMBER_ATTEMPTS = 3


class DjangoSaleStore:
    def commit(self, sale: FinalizedSale) -> Sale:
        for attempt in range(1, RECEIPT_NUMBER_ATTEMPTS + 1):
            try:
                return self._commit(sale)
            except IntegrityError as exc:
                # receipt_number is random; a clash is retried with a new number
                if attempt == RECEIPT_NUMBER_ATTEMPTS or "receipt_number" not in str(exc):
                    logger.exception("Sale commit rejected by the database")
                    raise PersistenceFailed(f"Failed to save sale: {exc}") from exc
                logger.warning("Receipt number clash; retrying", extra={"attempt": attempt})
            except DatabaseError as exc:
                logger.exception("Sale commit failed")
                raise PersistenceFailed(f"Failed to save sale: {exc}") from exc

    @transaction.atomic
    def _commit(self, draft: FinalizedSale) -> Sale:
        location = Location.objects.filter(id=draft.location_id, is_active=True).first()
        if location is None:
            raise LocationRequired("Selected location does not exist or is inactive")

        customer = None
        if draft.customer_id:
            customer = Customer.objects.filter(id=draft.customer_id, is_active=True).first()
        if draft.has_credit and customer is None:
            raise CustomerRequiredForCredit("Credit sales require an existing customer")

        totals = draft.totals

        sale = Sale.objects.create(
            cashier_id=draft.cashier_id,
            customer=customer,
            location=location,
            subtotal_amount=quantize_money(totals.subtotal),
            discount_amount=quantize_money(totals.discount),
            tax_amount=quantize_money(totals.tax),
            shipping_amount=quantize_money(totals.shipping),
            total_amount=quantize_money(totals.total),
            tax_mode=totals.tax_mode,
            sale_type=draft.sale_type,
            status=Sale.STATUS_PENDING if draft.has_credit else Sale.STATUS_COMPLETED,
        )

        SaleItem.objects.bulk_create(
            [
                SaleItem(
                    sale=sale,
                    product_id=item.product_id,
                    variant_id=item.variant_id or "",
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=quantize_money(item.unit_price),
                    total_price=quantize_money(item.total_price),
                )
                for item in draft.items
            ]
        )

        SalePayment.objects.bulk_create(
            [
                SalePayment(
                    sale=sale,
                    method=payment.method,
                    amount=quantize_money(payment.amount),
                    reference=payment.reference[:255],
                )
                for payment in draft.payments
            ]
        )

        if draft.has_credit:
            AccountsReceivable.objects.create(
                sale=sale,
                customer=customer,
                amount_due=quantize_money(draft.credit_amount),
                due_date=due_date_for(timezone.localdate(), draft.credit_due_days),
            )

        logger.info(
            "Sale recorded",
            extra={
                "sale_id": str(sale.id),
                "receipt_number": sale.receipt_number,
                "status": sale.status,
                "total": str(sale.total_amount),
            },
        )
        return sale
