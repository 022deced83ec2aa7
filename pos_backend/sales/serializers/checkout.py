# sales/serializers/checkout.py

"""
CHECKOUT INPUT SERIALIZERS

Shape validation only. Money rules (overpayment, references, credit)
belong to the payment ledger and surface as {"error": {...}} envelopes.
"""

from decimal import Decimal

from rest_framework import serializers

from payments.constants import METHOD_MOBILE_MONEY
from payments.services.catalog import normalize_method
from sales.models import Sale


class LineItemInputSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    variant_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    product_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))


class TotalsInputSerializer(serializers.Serializer):
    items = LineItemInputSerializer(many=True, allow_empty=True)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), default=Decimal("0"))
    tax = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), default=Decimal("0"))
    shipping = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), default=Decimal("0"))


class PaymentLegInputSerializer(serializers.Serializer):
    """
    One tender, replayed in order.
    NOTE: amount is ignored for credit (credit absorbs the remaining balance)
    and for mobile_money (the confirmed STK push settles the remaining balance).
    """

    method = serializers.CharField(max_length=32)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    confirm_change = serializers.BooleanField(required=False, default=False)
    checkout_request_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if normalize_method(attrs.get("method")) == METHOD_MOBILE_MONEY and not attrs.get("checkout_request_id", "").strip():
            raise serializers.ValidationError(
                {"checkout_request_id": "Mobile money payments need the STK push checkout_request_id."}
            )
        return attrs


class CheckoutInputSerializer(TotalsInputSerializer):
    location_id = serializers.UUIDField()
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    sale_type = serializers.ChoiceField(choices=Sale.TYPE_CHOICES, default=Sale.TYPE_RETAIL)
    payments = PaymentLegInputSerializer(many=True, allow_empty=True)


class TotalBreakdownSerializer(serializers.Serializer):
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2)
    shipping = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax_mode = serializers.CharField()
    auto_tax = serializers.BooleanField()
