# payments/models/__init__.py

from .mpesa_transaction import MpesaTransaction
from .payment_method import PaymentMethod

__all__ = [
    "MpesaTransaction",
    "PaymentMethod",
]
