# sales/models/sale.py

import secrets
import time
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


def generate_receipt_number() -> str:
    """R + last 6 digits of the ms timestamp + 3 random digits, e.g. R482913057."""
    stamp = str(int(time.time() * 1000))[-6:]
    return f"R{stamp}{secrets.randbelow(1000):03d}"


class Sale(models.Model):
    """
    A finalized POS transaction.

    GUARANTEES:
    - Written once, together with its items and payment legs
    - Financial fields are immutable after the first save
    - status is PENDING while a credit leg leaves money owed, else COMPLETED
    """

    STATUS_COMPLETED = "completed"
    STATUS_PENDING = "pending"

    STATUS_CHOICES = [
        (STATUS_COMPLETED, "Completed"),
        (STATUS_PENDING, "Pending (credit)"),
    ]

    TYPE_RETAIL = "retail"
    TYPE_WHOLESALE = "wholesale"

    TYPE_CHOICES = [
        (TYPE_RETAIL, "Retail"),
        (TYPE_WHOLESALE, "Wholesale"),
    ]

    TAX_MODE_CHOICES = [
        ("exclusive", "Tax exclusive"),
        ("inclusive", "Tax inclusive"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    receipt_number = models.CharField(
        max_length=32,
        unique=True,
        blank=True,
        help_text="System-generated receipt number",
    )

    cashier = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales",
    )
    customer = models.ForeignKey(
        "sales.Customer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="sales",
        help_text="Empty for walk-in customers.",
    )
    location = models.ForeignKey(
        "business.Location",
        on_delete=models.PROTECT,
        related_name="sales",
    )

    subtotal_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    tax_mode = models.CharField(max_length=16, choices=TAX_MODE_CHOICES, default="exclusive")
    sale_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_RETAIL)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_COMPLETED)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["created_at"], name="sale_created_idx"),
            models.Index(fields=["status"], name="sale_status_idx"),
            models.Index(fields=["location", "created_at"], name="sale_location_created_idx"),
        ]

    _IMMUTABLE_FIELDS = (
        "cashier_id",
        "customer_id",
        "location_id",
        "subtotal_amount",
        "discount_amount",
        "tax_amount",
        "shipping_amount",
        "total_amount",
        "tax_mode",
        "receipt_number",
    )

    @property
    def is_credit_sale(self) -> bool:
        return self.status == self.STATUS_PENDING

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = Sale.objects.filter(pk=self.pk).first()
            if previous is not None:
                for field in self._IMMUTABLE_FIELDS:
                    if getattr(self, field) != getattr(previous, field):
                        raise ValueError(f"Sale field '{field}' cannot be changed after it is recorded.")

        if not self.receipt_number:
            self.receipt_number = generate_receipt_number()

        if self.status == self.STATUS_COMPLETED and not self.completed_at:
            self.completed_at = timezone.now()

        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.receipt_number} | {self.total_amount}"
