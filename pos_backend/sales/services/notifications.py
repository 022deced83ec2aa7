# sales/services/notifications.py

"""
RECEIPT NOTIFICATIONS

Runs after a sale is committed. Never part of the commit: the checkout
session calls notify() best-effort and only logs a failure.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail

from business.services.config import get_checkout_config

logger = logging.getLogger(__name__)


def render_receipt_text(sale) -> str:
    config = get_checkout_config()
    fmt = config.format_amount

    lines = [f"Receipt {sale.receipt_number}", ""]
    for item in sale.items.all():
        label = item.product_name or item.product_id
        lines.append(f"{label} x{item.quantity}  {fmt(item.total_price)}")

    lines.append("")
    lines.append(f"Subtotal: {fmt(sale.subtotal_amount)}")
    if sale.discount_amount:
        lines.append(f"Discount: -{fmt(sale.discount_amount)}")
    if sale.shipping_amount:
        lines.append(f"Shipping: {fmt(sale.shipping_amount)}")
    lines.append(f"Tax ({sale.tax_mode}): {fmt(sale.tax_amount)}")
    lines.append(f"Total: {fmt(sale.total_amount)}")
    lines.append("")

    for payment in sale.payments.all():
        line = f"Paid by {payment.get_method_display()}: {fmt(payment.amount)}"
        if payment.reference:
            line += f" ({payment.reference})"
        lines.append(line)

    receivable = getattr(sale, "receivable", None) if sale.is_credit_sale else None
    if receivable is not None:
        lines.append(f"Balance due by {receivable.due_date:%Y-%m-%d}: {fmt(receivable.balance)}")

    return "\n".join(lines)


class EmailReceiptNotifier:
    """Emails the receipt to the sale's customer when they have an address."""

    def notify(self, sale) -> None:
        pos = getattr(settings, "POS", {}) or {}
        if not pos.get("RECEIPT_EMAIL_ENABLED"):
            return

        customer = getattr(sale, "customer", None)
        email = (getattr(customer, "email", "") or "").strip()
        if not email:
            logger.info("Receipt email skipped; no customer email", extra={"sale_id": str(sale.id)})
            return

        send_mail(
            subject=f"Your receipt {sale.receipt_number}",
            message=render_receipt_text(sale),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[email],
            fail_silently=False,
        )
        logger.info("Receipt emailed", extra={"sale_id": str(sale.id), "receipt_number": sale.receipt_number})
