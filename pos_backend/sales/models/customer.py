# sales/models/customer.py

import uuid

from django.db import models


class Customer(models.Model):
    """
    A known customer. Walk-in sales have no customer row.
    Credit sales MUST reference one (they become receivables).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name
