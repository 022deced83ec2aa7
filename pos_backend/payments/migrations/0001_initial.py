"""
MIGRATION: payments initial schema (PaymentMethod, MpesaTransaction)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

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


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PaymentMethod",
            fields=[
                (
                    "id",
                    models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False),
                ),
                ("name", models.CharField(max_length=100)),
                ("type", models.CharField(choices=PAYMENT_METHOD_CHOICES, max_length=32)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("requires_reference", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("display_order", models.PositiveIntegerField(default=0)),
            ],
            options={"ordering": ["display_order", "name"]},
        ),
        migrations.CreateModel(
            name="MpesaTransaction",
            fields=[
                (
                    "id",
                    models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False),
                ),
                ("checkout_request_id", models.CharField(max_length=100, unique=True)),
                ("merchant_request_id", models.CharField(blank=True, default="", max_length=100)),
                ("phone_number", models.CharField(max_length=20)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("reference", models.CharField(blank=True, default="", max_length=100)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("timeout", "Timeout"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("result_code", models.IntegerField(blank=True, null=True)),
                ("result_description", models.CharField(blank=True, default="", max_length=255)),
                ("mpesa_receipt_number", models.CharField(blank=True, default="", max_length=50)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="mpesa_status_created_idx"),
                ],
            },
        ),
    ]
