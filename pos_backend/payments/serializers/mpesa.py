# payments/serializers/mpesa.py

from rest_framework import serializers

from payments.models import MpesaTransaction
from payments.services.mpesa import STATUS_MESSAGES


class StkPushInputSerializer(serializers.Serializer):
    phone_number = serializers.CharField(max_length=20)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=1)
    reference = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="Payment")


class MpesaStatusSerializer(serializers.ModelSerializer):
    transaction_id = serializers.UUIDField(source="id", read_only=True)
    message = serializers.SerializerMethodField()

    class Meta:
        model = MpesaTransaction
        fields = [
            "transaction_id",
            "checkout_request_id",
            "status",
            "amount",
            "mpesa_receipt_number",
            "result_code",
            "result_description",
            "message",
        ]
        read_only_fields = fields

    def get_message(self, obj):
        return STATUS_MESSAGES.get(obj.status, "Unknown status")


class MpesaCallbackAckSerializer(serializers.Serializer):
    ResultCode = serializers.IntegerField()
    ResultDesc = serializers.CharField()
