# payments/admin.py

from django.contrib import admin

from payments.models import MpesaTransaction, PaymentMethod


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ("name", "type", "requires_reference", "is_active", "display_order")
    list_editable = ("requires_reference", "is_active", "display_order")
    list_filter = ("type", "is_active")


@admin.register(MpesaTransaction)
class MpesaTransactionAdmin(admin.ModelAdmin):
    list_display = ("checkout_request_id", "phone_number", "amount", "status", "mpesa_receipt_number", "created_at")
    readonly_fields = (
        "checkout_request_id",
        "merchant_request_id",
        "phone_number",
        "amount",
        "reference",
        "result_code",
        "result_description",
        "mpesa_receipt_number",
        "created_at",
        "updated_at",
    )
    search_fields = ("checkout_request_id", "mpesa_receipt_number", "phone_number", "reference")
    list_filter = ("status", "created_at")
