# sales/models/sale_item.py

"""
SALE ITEM (IMMUTABLE SNAPSHOT)

Product and variant are referenced by id only; the product catalog is an
external collaborator, so the name is snapshotted for receipts.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class SaleItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sale = models.ForeignKey(
        "sales.Sale",
        on_delete=models.CASCADE,
        related_name="items",
    )

    product_id = models.CharField(max_length=64, db_index=True)
    variant_id = models.CharField(max_length=64, blank=True, default="")
    product_name = models.CharField(max_length=255, blank=True, default="")

    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, editable=False)

    class Meta:
        ordering = ["sale", "id"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("SaleItem records are immutable")
        self.total_price = Decimal(self.unit_price) * Decimal(int(self.quantity or 0))
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.product_name or self.product_id} x{self.quantity}"
