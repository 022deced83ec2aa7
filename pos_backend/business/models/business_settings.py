# business/models/business_settings.py

"""
BUSINESS SETTINGS

Checkout-relevant knobs an owner can change without a deploy:
- tax_inclusive: shelf prices already contain tax
- default_tax_rate: percentage applied when the cashier leaves tax at 0
- currency_code: display currency for receipts

The most recently updated row wins. With no row at all, the
values from settings.POS are used (see business.services.config).
"""

import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class BusinessSettings(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    business_name = models.CharField(max_length=255, blank=True, default="")

    tax_inclusive = models.BooleanField(default=False)
    default_tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00")), MaxValueValidator(Decimal("100.00"))],
        help_text="Percentage, e.g. 16.00 for 16% VAT.",
    )
    currency_code = models.CharField(max_length=8, default="KES")

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Business settings"
        verbose_name_plural = "Business settings"
        ordering = ["-updated_at"]

    def __str__(self):
        mode = "inclusive" if self.tax_inclusive else "exclusive"
        return f"{self.business_name or 'Business'} | tax {self.default_tax_rate}% {mode}"
