# payments/services/catalog.py

"""
PAYMENT METHOD CATALOG

The payment ledger asks one question of the catalog:
"does this method require a reference?"

Two implementations:
- InMemoryPaymentMethodCatalog: fixed rules (the built-in fallback set)
- load_payment_method_catalog(): reads active PaymentMethod rows, falling
  back to the built-in set when the table is empty or unreachable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from django.db import DatabaseError

from payments.constants import (
    METHOD_ALIASES,
    METHOD_CARD,
    METHOD_CASH,
    METHOD_CREDIT,
    PAYMENT_METHODS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentMethodRule:
    type: str
    name: str = ""
    requires_reference: bool = False


class PaymentMethodCatalog(Protocol):
    def get(self, method_type: str) -> Optional[PaymentMethodRule]: ...

    def all(self) -> list[PaymentMethodRule]: ...


def normalize_method(method) -> str:
    m = str(method or "").strip().lower()
    return METHOD_ALIASES.get(m, m)


def is_supported_method(method) -> bool:
    return normalize_method(method) in PAYMENT_METHODS


class InMemoryPaymentMethodCatalog:
    def __init__(self, rules: Iterable[PaymentMethodRule]):
        self._rules: dict[str, PaymentMethodRule] = {}
        for rule in rules:
            # first rule per type wins (display order)
            self._rules.setdefault(normalize_method(rule.type), rule)

    def get(self, method_type: str) -> Optional[PaymentMethodRule]:
        return self._rules.get(normalize_method(method_type))

    def all(self) -> list[PaymentMethodRule]:
        return list(self._rules.values())

    def requires_reference(self, method_type: str) -> bool:
        rule = self.get(method_type)
        return bool(rule and rule.requires_reference)

    def __len__(self):
        return len(self._rules)


DEFAULT_PAYMENT_METHODS = (
    PaymentMethodRule(type=METHOD_CASH, name="Cash", requires_reference=False),
    PaymentMethodRule(type=METHOD_CARD, name="Credit/Debit Card", requires_reference=True),
    PaymentMethodRule(type=METHOD_CREDIT, name="Credit Sale (Pay Later)", requires_reference=False),
)


def default_catalog() -> InMemoryPaymentMethodCatalog:
    return InMemoryPaymentMethodCatalog(DEFAULT_PAYMENT_METHODS)


def load_payment_method_catalog() -> InMemoryPaymentMethodCatalog:
    """
    Snapshot the active PaymentMethod rows into an in-memory catalog.
    """
    from payments.models import PaymentMethod

    try:
        rows = list(
            PaymentMethod.objects.filter(is_active=True).order_by("display_order", "name")
        )
    except DatabaseError:
        logger.exception("Payment method catalog unavailable; using built-in methods")
        return default_catalog()

    if not rows:
        logger.info("Payment method catalog is empty; using built-in methods")
        return default_catalog()

    return InMemoryPaymentMethodCatalog(
        PaymentMethodRule(
            type=row.type,
            name=row.name,
            requires_reference=row.requires_reference,
        )
        for row in rows
    )
