# payments/serializers/__init__.py

from .mpesa import MpesaCallbackAckSerializer, MpesaStatusSerializer, StkPushInputSerializer
from .payment_method import PaymentMethodSerializer

__all__ = [
    "MpesaCallbackAckSerializer",
    "MpesaStatusSerializer",
    "PaymentMethodSerializer",
    "StkPushInputSerializer",
]
