# sales/views/checkout.py

"""
SALES CHECKOUT API VIEWS

- POST /api/sales/totals/    price a draft (no writes)
- POST /api/sales/checkout/  replay a draft through a CheckoutSession and finalize

The till keeps the draft client-side; every request carries the whole draft
and the server recomputes totals and replays each payment leg through the
payment ledger, in order.

Mobile money legs carry the STK push checkout_request_id and are recorded
for the remaining balance only once the M-Pesa callback marked it successful.

Cash legs above the balance:
- without confirm_change -> 409 CASH_OVERPAYMENT with change_due (nothing written)
- with confirm_change    -> recorded as ONE cash leg for the balance; change is
                            only noted in the leg's reference
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiExample, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from business.services.config import get_checkout_config
from payments.constants import METHOD_CASH, METHOD_MOBILE_MONEY
from payments.services.catalog import load_payment_method_catalog, normalize_method
from payments.services.mpesa import settle_mobile_money_leg
from sales.models import Sale
from sales.serializers import (
    CheckoutInputSerializer,
    SaleSerializer,
    TotalBreakdownSerializer,
    TotalsInputSerializer,
)
from sales.services.checkout_session import CheckoutSession
from sales.services.exceptions import CheckoutError
from sales.services.notifications import EmailReceiptNotifier
from sales.services.sale_store import DjangoSaleStore
from sales.services.totals import LineItem, compute_total_for_config
from sales.views.errors import checkout_error_response, error_response

logger = logging.getLogger(__name__)


def _line_item(data) -> LineItem:
    return LineItem(
        product_id=data["product_id"],
        quantity=int(data["quantity"]),
        unit_price=data["unit_price"],
        variant_id=(data.get("variant_id") or None),
        product_name=data.get("product_name") or "",
    )


def _replay_payment(session: CheckoutSession, leg) -> None:
    method = normalize_method(leg["method"])
    amount = leg.get("amount")

    if method == METHOD_CASH and leg.get("confirm_change"):
        if session.tender_cash(amount) is None:
            session.cash.confirm()
        return

    if method == METHOD_MOBILE_MONEY:
        settle_mobile_money_leg(session.ledger, leg["checkout_request_id"])
        return

    session.add_payment(method, amount, leg.get("reference") or "")


class TotalsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=TotalsInputSerializer,
        responses={200: TotalBreakdownSerializer},
        description="Compute subtotal, tax and total for a draft sale using the business tax settings.",
    )
    def post(self, request):
        ser = TotalsInputSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            items = [_line_item(i) for i in data["items"]]
            totals = compute_total_for_config(
                items,
                get_checkout_config(),
                discount=data["discount"],
                tax=data["tax"],
                shipping=data["shipping"],
            )
        except CheckoutError as exc:
            return checkout_error_response(exc)
        except ValueError as exc:
            return error_response(code="INVALID_ADJUSTMENT", message=str(exc), http_status=status.HTTP_400_BAD_REQUEST)

        return Response(totals.as_dict(), status=status.HTTP_200_OK)


class CheckoutView(APIView):
    """
    Finalize a draft into an immutable Sale.

    Calls:
    - sales.services.checkout_session.CheckoutSession.finalize()
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=CheckoutInputSerializer,
        responses={201: SaleSerializer},
        examples=[
            OpenApiExample(
                "Split payment (cash + card + credit)",
                value={
                    "location_id": "07d0722f-92fd-4a83-b84e-6e25f034a647",
                    "customer_id": "5b0f2a4e-3c1d-4b7e-9a51-0c2b9e3d7f11",
                    "items": [{"product_id": "SKU-1", "quantity": 2, "unit_price": "500.00"}],
                    "payments": [
                        {"method": "cash", "amount": "300.00"},
                        {"method": "card", "amount": "200.00", "reference": "POS-8891"},
                        {"method": "credit"},
                    ],
                },
                request_only=True,
            ),
            OpenApiExample(
                "Cash with change",
                value={
                    "location_id": "07d0722f-92fd-4a83-b84e-6e25f034a647",
                    "items": [{"product_id": "SKU-1", "quantity": 1, "unit_price": "850.00"}],
                    "payments": [{"method": "cash", "amount": "1000.00", "confirm_change": True}],
                },
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        ser = CheckoutInputSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        session = CheckoutSession(
            get_checkout_config(),
            catalog=load_payment_method_catalog(),
            store=DjangoSaleStore(),
            notifier=EmailReceiptNotifier(),
        )

        try:
            for item in data["items"]:
                session.add_item(
                    item["product_id"],
                    int(item["quantity"]),
                    item["unit_price"],
                    variant_id=item.get("variant_id") or None,
                    product_name=item.get("product_name") or "",
                )
            session.set_adjustments(
                discount=data["discount"],
                tax=data["tax"],
                shipping=data["shipping"],
            )

            for leg in data["payments"]:
                _replay_payment(session, leg)

            sale = session.finalize(
                location_id=data["location_id"],
                customer_id=data.get("customer_id"),
                cashier_id=request.user.pk,
                sale_type=data["sale_type"],
            )
        except CheckoutError as exc:
            logger.info("Checkout rejected", extra={"code": exc.code, "reason": str(exc)})
            return checkout_error_response(exc)
        except ValueError as exc:
            return error_response(code="INVALID_ADJUSTMENT", message=str(exc), http_status=status.HTTP_400_BAD_REQUEST)

        sale = (
            Sale.objects.select_related("location", "customer")
            .prefetch_related("items", "payments")
            .get(pk=sale.pk)
        )
        return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)
