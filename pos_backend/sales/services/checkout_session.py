# sales/services/checkout_session.py

"""
CHECKOUT SESSION (APPLICATION SERVICE)

One in-progress transaction: line items + adjustments + payment ledger.

Finalize rules (checked in this order):
- NoLineItems                 at least one line item
- LocationRequired            a selling location is chosen
- CustomerRequiredForCredit   credit legs need a known customer
- PaymentIncomplete           balance <= 0, unless a credit leg exists

Commit boundary:
- finalize is NOT reentrant (submitting guard -> FinalizeInProgress)
- success is reported only after the store confirms the write
- domain errors raised by the store pass through unchanged
- any other store failure raises PersistenceFailed and leaves items + payments intact
  so the cashier can simply retry
- after a successful commit the session is cleared, then the receipt
  notifier runs best-effort (failure is logged, never raised)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Protocol

from business.services.config import CheckoutConfig
from payments.services.catalog import PaymentMethodCatalog
from sales.services.cash_change import CashChangeFlow
from sales.services.exceptions import (
    CheckoutError,
    CustomerRequiredForCredit,
    FinalizeInProgress,
    LocationRequired,
    NoLineItems,
    PaymentIncomplete,
    PersistenceFailed,
)
from sales.services.payment_ledger import Payment, PaymentLedger
from sales.services.totals import (
    ZERO,
    LineItem,
    TotalBreakdown,
    compute_total_for_config,
    to_decimal,
)

logger = logging.getLogger(__name__)

SALE_TYPE_RETAIL = "retail"


@dataclass(frozen=True)
class FinalizedSale:
    items: tuple[LineItem, ...]
    payments: tuple[Payment, ...]
    totals: TotalBreakdown
    location_id: Any
    customer_id: Any = None
    cashier_id: Any = None
    sale_type: str = SALE_TYPE_RETAIL
    credit_due_days: int = 30

    @property
    def has_credit(self) -> bool:
        return any(p.is_credit for p in self.payments)

    @property
    def credit_amount(self) -> Decimal:
        return sum((p.amount for p in self.payments if p.is_credit), ZERO)


class SaleStore(Protocol):
    def commit(self, sale: FinalizedSale) -> Any: ...


class ReceiptNotifier(Protocol):
    def notify(self, record: Any) -> None: ...


class CheckoutSession:
    def __init__(
        self,
        config: CheckoutConfig,
        *,
        catalog: Optional[PaymentMethodCatalog] = None,
        store: Optional[SaleStore] = None,
        notifier: Optional[ReceiptNotifier] = None,
    ):
        self.config = config
        self.ledger = PaymentLedger(ZERO, catalog)
        self.cash = CashChangeFlow(self.ledger, format_amount=config.format_amount)
        self._store = store
        self._notifier = notifier
        self._items: list[LineItem] = []
        self._discount = ZERO
        self._tax = ZERO
        self._shipping = ZERO
        self._submitting = False

    # ---------------------------------------------------------
    # line items + adjustments
    # ---------------------------------------------------------

    @property
    def items(self) -> tuple[LineItem, ...]:
        return tuple(self._items)

    @property
    def submitting(self) -> bool:
        return self._submitting

    def add_item(self, product_id, quantity: int, unit_price, *, variant_id=None, product_name: str = "") -> LineItem:
        product_id = str(product_id or "").strip()
        variant = str(variant_id).strip() if variant_id else None
        for idx, existing in enumerate(self._items):
            if existing.product_id == product_id and existing.variant_id == variant:
                merged = LineItem(
                    product_id=existing.product_id,
                    variant_id=existing.variant_id,
                    product_name=existing.product_name,
                    quantity=existing.quantity + quantity,
                    unit_price=existing.unit_price,
                )
                items = list(self._items)
                items[idx] = merged
                self._apply(items=items)
                return merged

        item = LineItem(
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            variant_id=variant,
            product_name=product_name,
        )
        self._apply(items=[*self._items, item])
        return item

    def remove_item(self, product_id, variant_id=None) -> None:
        product_id = str(product_id or "").strip()
        variant = str(variant_id).strip() if variant_id else None
        self._apply(
            items=[i for i in self._items if not (i.product_id == product_id and i.variant_id == variant)]
        )

    def set_adjustments(self, *, discount=None, tax=None, shipping=None) -> TotalBreakdown:
        return self._apply(
            discount=self._discount if discount is None else to_decimal(discount, field="discount"),
            tax=self._tax if tax is None else to_decimal(tax, field="tax"),
            shipping=self._shipping if shipping is None else to_decimal(shipping, field="shipping"),
        )

    @property
    def totals(self) -> TotalBreakdown:
        return compute_total_for_config(
            self._items,
            self.config,
            discount=self._discount,
            tax=self._tax,
            shipping=self._shipping,
        )

    def _apply(self, *, items=None, discount=None, tax=None, shipping=None) -> TotalBreakdown:
        """Price the candidate draft first; state only changes if it is valid."""
        items = self._items if items is None else items
        discount = self._discount if discount is None else discount
        tax = self._tax if tax is None else tax
        shipping = self._shipping if shipping is None else shipping

        totals = compute_total_for_config(
            items, self.config, discount=discount, tax=tax, shipping=shipping
        )

        self._items = list(items)
        self._discount, self._tax, self._shipping = discount, tax, shipping
        self.ledger.total = totals.total
        return totals

    # ---------------------------------------------------------
    # payments
    # ---------------------------------------------------------

    def add_payment(self, method, amount=None, reference: Optional[str] = None) -> Payment:
        return self.ledger.add_payment(method, amount, reference)

    def remove_payment(self, payment_id: str) -> Decimal:
        return self.ledger.remove_payment(payment_id)

    def tender_cash(self, amount) -> Optional[Payment]:
        return self.cash.tender(amount)

    def can_finalize(self) -> bool:
        return self.ledger.can_finalize()

    # ---------------------------------------------------------
    # finalize / reset
    # ---------------------------------------------------------

    def finalize(self, *, location_id, customer_id=None, cashier_id=None, sale_type: str = SALE_TYPE_RETAIL):
        if self._submitting:
            raise FinalizeInProgress("This sale is already being submitted")

        if not self._items:
            raise NoLineItems("Please add at least one item to the sale")
        if not location_id:
            raise LocationRequired("Please select a location for this sale")
        if self.ledger.has_credit and not customer_id:
            raise CustomerRequiredForCredit("Please select a customer for credit sales")
        if self.cash.pending is not None:
            raise CheckoutError("Confirm or cancel the pending cash tender first")
        if not self.ledger.can_finalize():
            raise PaymentIncomplete(
                f"Please complete payment before finalizing sale "
                f"(balance due: {self.config.format_amount(self.ledger.remaining_balance)})"
            )
        if self._store is None:
            raise RuntimeError("CheckoutSession has no sale store configured")

        draft = FinalizedSale(
            items=self.items,
            payments=self.ledger.payments,
            totals=self.totals,
            location_id=location_id,
            customer_id=customer_id,
            cashier_id=cashier_id,
            sale_type=sale_type or SALE_TYPE_RETAIL,
            credit_due_days=self.config.credit_due_days,
        )

        self._submitting = True
        try:
            record = self._store.commit(draft)
        except CheckoutError:
            # domain rejections from the store (unknown location, inactive customer) pass through
            raise
        except Exception as exc:
            logger.exception("Sale commit failed", extra={"location_id": str(location_id)})
            raise PersistenceFailed(f"Failed to complete sale: {exc}") from exc
        finally:
            self._submitting = False

        logger.info(
            "Sale finalized",
            extra={
                "location_id": str(location_id),
                "total": str(draft.totals.total),
                "payment_count": len(draft.payments),
                "credit": draft.has_credit,
            },
        )

        self.reset()
        self._notify(record)
        return record

    def reset(self) -> None:
        self._items = []
        self._discount = ZERO
        self._tax = ZERO
        self._shipping = ZERO
        self.ledger.clear()
        self.ledger.total = ZERO
        if self.cash.pending is not None:
            self.cash.cancel()

    def _notify(self, record) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(record)
        except Exception:
            # the sale is already committed; a lost receipt must not undo it
            logger.exception("Receipt notification failed after finalize")
