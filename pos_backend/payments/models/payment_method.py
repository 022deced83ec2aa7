# payments/models/payment_method.py

import uuid

from django.db import models

from payments.constants import METHOD_CHOICES


class PaymentMethod(models.Model):
    """
    Tender types the till offers, in display order.

    requires_reference: the cashier must type a slip / transaction number
    before the leg is accepted (card terminals, bank transfers, cheques).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=100)
    type = models.CharField(max_length=32, choices=METHOD_CHOICES)
    description = models.CharField(max_length=255, blank=True, default="")

    requires_reference = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["display_order", "name"]

    def __str__(self):
        return f"{self.name} ({self.type})"
