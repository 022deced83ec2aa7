# business/services/config.py

"""
CHECKOUT CONFIGURATION

The checkout engine never reads settings or the database on its own.
Callers resolve a CheckoutConfig once (per request / per session) and
pass it into the total calculator and the checkout session.

Resolution order:
1) latest BusinessSettings row
2) settings.POS (env-driven defaults)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings

logger = logging.getLogger(__name__)

TAX_INCLUSIVE = "inclusive"
TAX_EXCLUSIVE = "exclusive"
TAX_MODES = (TAX_INCLUSIVE, TAX_EXCLUSIVE)


@dataclass(frozen=True)
class CheckoutConfig:
    tax_mode: str = TAX_EXCLUSIVE
    default_tax_rate: Decimal = Decimal("0")
    currency: str = "KES"
    credit_due_days: int = 30

    def __post_init__(self):
        if self.tax_mode not in TAX_MODES:
            raise ValueError(f"Unknown tax mode: {self.tax_mode}")
        if self.default_tax_rate < 0:
            raise ValueError("default_tax_rate must be >= 0")

    @property
    def tax_inclusive(self) -> bool:
        return self.tax_mode == TAX_INCLUSIVE

    def format_amount(self, amount) -> str:
        return f"{self.currency} {Decimal(str(amount)):,.2f}"


def _rate(value) -> Decimal:
    try:
        return Decimal(str(value or "0"))
    except (InvalidOperation, ValueError, TypeError):
        logger.warning("Invalid default tax rate in settings", extra={"value": value})
        return Decimal("0")


def config_from_settings() -> CheckoutConfig:
    pos = getattr(settings, "POS", {}) or {}
    return CheckoutConfig(
        tax_mode=TAX_INCLUSIVE if pos.get("TAX_INCLUSIVE") else TAX_EXCLUSIVE,
        default_tax_rate=_rate(pos.get("DEFAULT_TAX_RATE")),
        currency=str(pos.get("CURRENCY") or "KES"),
        credit_due_days=int(pos.get("CREDIT_SALE_DUE_DAYS") or 30),
    )


def get_checkout_config() -> CheckoutConfig:
    from business.models import BusinessSettings

    base = config_from_settings()
    row = BusinessSettings.objects.order_by("-updated_at").first()
    if row is None:
        return base

    return CheckoutConfig(
        tax_mode=TAX_INCLUSIVE if row.tax_inclusive else TAX_EXCLUSIVE,
        default_tax_rate=_rate(row.default_tax_rate),
        currency=(row.currency_code or base.currency).strip().upper(),
        credit_due_days=base.credit_due_days,
    )


def due_date_for(sale_date: date, credit_due_days: int) -> date:
    return sale_date + timedelta(days=int(credit_due_days))
