# sales/models/accounts_receivable.py

import uuid
from decimal import Decimal

from django.db import models


class AccountsReceivable(models.Model):
    """
    Money a customer owes for a credit sale.
    Created by finalize; collection happens outside the checkout flow.
    """

    STATUS_OPEN = "open"
    STATUS_PAID = "paid"

    STATUS_CHOICES = [
        (STATUS_OPEN, "Open"),
        (STATUS_PAID, "Paid"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sale = models.OneToOneField(
        "sales.Sale",
        on_delete=models.PROTECT,
        related_name="receivable",
    )
    customer = models.ForeignKey(
        "sales.Customer",
        on_delete=models.PROTECT,
        related_name="receivables",
    )

    amount_due = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    due_date = models.DateField()

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_OPEN)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["due_date"]
        indexes = [
            models.Index(fields=["status", "due_date"], name="receivable_status_due_idx"),
        ]

    @property
    def balance(self) -> Decimal:
        return self.amount_due - self.amount_paid

    def __str__(self):
        return f"{self.customer} owes {self.balance} (due {self.due_date})"
