"""
MIGRATION: sales initial schema (Customer, Sale, SaleItem, SalePayment, AccountsReceivable)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

PAYMENT_METHOD_CHOICES = [
    ("cash", "Cash"),
    ("card", "Card"),
    ("mobile_money", "Mobile Money"),
    ("bank_transfer", "Bank Transfer"),
    ("check", "Check"),
    ("gift_card", "Gift Card"),
    ("credit", "Credit Sale (Pay Later)"),
]


def _money():
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)


def _uuid_pk():
    return models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("business", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", _uuid_pk()),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", _uuid_pk()),
                (
                    "receipt_number",
                    models.CharField(
                        blank=True,
                        help_text="System-generated receipt number",
                        max_length=32,
                        unique=True,
                    ),
                ),
                ("subtotal_amount", _money()),
                ("discount_amount", _money()),
                ("tax_amount", _money()),
                ("shipping_amount", _money()),
                ("total_amount", _money()),
                (
                    "tax_mode",
                    models.CharField(
                        choices=[("exclusive", "Tax exclusive"), ("inclusive", "Tax inclusive")],
                        default="exclusive",
                        max_length=16,
                    ),
                ),
                (
                    "sale_type",
                    models.CharField(
                        choices=[("retail", "Retail"), ("wholesale", "Wholesale")],
                        default="retail",
                        max_length=16,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("completed", "Completed"), ("pending", "Pending (credit)")],
                        default="completed",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "cashier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="sales",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        help_text="Empty for walk-in customers.",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to="sales.customer",
                    ),
                ),
                (
                    "location",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to="business.location",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["created_at"], name="sale_created_idx"),
                    models.Index(fields=["status"], name="sale_status_idx"),
                    models.Index(fields=["location", "created_at"], name="sale_location_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SaleItem",
            fields=[
                ("id", _uuid_pk()),
                ("product_id", models.CharField(db_index=True, max_length=64)),
                ("variant_id", models.CharField(blank=True, default="", max_length=64)),
                ("product_name", models.CharField(blank=True, default="", max_length=255)),
                ("quantity", models.PositiveIntegerField()),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("total_price", models.DecimalField(decimal_places=2, editable=False, max_digits=12)),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="sales.sale",
                    ),
                ),
            ],
            options={"ordering": ["sale", "id"]},
        ),
        migrations.CreateModel(
            name="SalePayment",
            fields=[
                ("id", _uuid_pk()),
                ("method", models.CharField(choices=PAYMENT_METHOD_CHOICES, max_length=32)),
                ("amount", _money()),
                ("reference", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="sales.sale",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["method"], name="sale_payment_method_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccountsReceivable",
            fields=[
                ("id", _uuid_pk()),
                ("amount_due", _money()),
                ("amount_paid", _money()),
                ("due_date", models.DateField()),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "Open"), ("paid", "Paid")],
                        default="open",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receivables",
                        to="sales.customer",
                    ),
                ),
                (
                    "sale",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receivable",
                        to="sales.sale",
                    ),
                ),
            ],
            options={
                "ordering": ["due_date"],
                "indexes": [
                    models.Index(fields=["status", "due_date"], name="receivable_status_due_idx"),
                ],
            },
        ),
    ]
