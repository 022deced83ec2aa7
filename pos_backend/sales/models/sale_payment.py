# sales/models/sale_payment.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from payments.constants import METHOD_CHOICES


class SalePayment(models.Model):
    """
    Immutable payment legs for a Sale.

    RULES:
    - Written once at finalize, in the same transaction as the Sale.
    - Cash change is never a leg; it only appears in the reference text.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sale = models.ForeignKey(
        "sales.Sale",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    method = models.CharField(max_length=32, choices=METHOD_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    reference = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["method"], name="sale_payment_method_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("SalePayment records are immutable")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.sale_id} | {self.method} | {self.amount}"
