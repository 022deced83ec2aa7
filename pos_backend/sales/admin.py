# sales/admin.py

from django.contrib import admin

from sales.models import AccountsReceivable, Customer, Sale, SaleItem, SalePayment


# ======================================================
# SALE ADMIN
# ======================================================


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    can_delete = False
    readonly_fields = ("product_id", "variant_id", "product_name", "quantity", "unit_price", "total_price")


class SalePaymentInline(admin.TabularInline):
    model = SalePayment
    extra = 0
    can_delete = False
    readonly_fields = ("method", "amount", "reference", "created_at")


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = (
        "receipt_number",
        "status",
        "sale_type",
        "location",
        "total_amount",
        "created_at",
    )
    readonly_fields = (
        "receipt_number",
        "cashier",
        "customer",
        "location",
        "subtotal_amount",
        "discount_amount",
        "tax_amount",
        "shipping_amount",
        "total_amount",
        "tax_mode",
        "created_at",
        "completed_at",
    )
    search_fields = ("receipt_number",)
    list_filter = ("status", "sale_type", "created_at")
    inlines = [SaleItemInline, SalePaymentInline]


# ======================================================
# CUSTOMERS + RECEIVABLES
# ======================================================


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "email", "phone", "is_active")
    search_fields = ("name", "email", "phone")
    list_filter = ("is_active",)


@admin.register(AccountsReceivable)
class AccountsReceivableAdmin(admin.ModelAdmin):
    list_display = ("sale", "customer", "amount_due", "amount_paid", "due_date", "status")
    readonly_fields = ("sale", "customer", "amount_due", "created_at")
    search_fields = ("sale__receipt_number", "customer__name")
    list_filter = ("status", "due_date")
