# sales/serializers/__init__.py

from .checkout import (
    CheckoutInputSerializer,
    LineItemInputSerializer,
    PaymentLegInputSerializer,
    TotalBreakdownSerializer,
    TotalsInputSerializer,
)
from .sale import (
    AccountsReceivableSerializer,
    SaleItemSerializer,
    SalePaymentSerializer,
    SaleSerializer,
)

__all__ = [
    "AccountsReceivableSerializer",
    "CheckoutInputSerializer",
    "LineItemInputSerializer",
    "PaymentLegInputSerializer",
    "SaleItemSerializer",
    "SalePaymentSerializer",
    "SaleSerializer",
    "TotalBreakdownSerializer",
    "TotalsInputSerializer",
]
