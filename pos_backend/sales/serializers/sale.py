# sales/serializers/sale.py

from rest_framework import serializers

from sales.models import AccountsReceivable, Sale, SaleItem, SalePayment


class SaleItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = SaleItem
        fields = [
            "id",
            "product_id",
            "variant_id",
            "product_name",
            "quantity",
            "unit_price",
            "total_price",
        ]
        read_only_fields = fields


class SalePaymentSerializer(serializers.ModelSerializer):
    """Payment legs (read-only), in the order they were tendered."""

    class Meta:
        model = SalePayment
        fields = [
            "id",
            "method",
            "amount",
            "reference",
            "created_at",
        ]
        read_only_fields = fields


class AccountsReceivableSerializer(serializers.ModelSerializer):
    balance = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = AccountsReceivable
        fields = [
            "id",
            "customer",
            "amount_due",
            "amount_paid",
            "balance",
            "due_date",
            "status",
        ]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    """
    CANONICAL SALE SERIALIZER
    Used for the checkout response, receipts and sales history.
    """

    location_name = serializers.CharField(source="location.name", read_only=True)
    customer_name = serializers.SerializerMethodField()

    items = SaleItemSerializer(many=True, read_only=True)
    payments = SalePaymentSerializer(many=True, read_only=True)
    receivable = serializers.SerializerMethodField()

    class Meta:
        model = Sale
        fields = [
            "id",
            "receipt_number",
            "status",
            "sale_type",
            "tax_mode",
            "location",
            "location_name",
            "customer",
            "customer_name",
            "cashier",
            "subtotal_amount",
            "discount_amount",
            "tax_amount",
            "shipping_amount",
            "total_amount",
            "items",
            "payments",
            "receivable",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields

    def get_customer_name(self, obj):
        return getattr(obj.customer, "name", None) or "Walk-in"

    def get_receivable(self, obj):
        receivable = getattr(obj, "receivable", None)
        if receivable is None:
            return None
        return AccountsReceivableSerializer(receivable).data
