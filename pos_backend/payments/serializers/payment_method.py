# payments/serializers/payment_method.py

from rest_framework import serializers


class PaymentMethodSerializer(serializers.Serializer):
    """Read-only view of a catalog rule (DB row or built-in fallback)."""

    type = serializers.CharField()
    name = serializers.CharField()
    requires_reference = serializers.BooleanField()
