# sales/services/payment_ledger.py

"""
PAYMENT LEDGER (PURE DOMAIN SERVICE)

Holds the ordered payment legs of ONE in-progress transaction.

Invariants:
- remaining_balance == total - sum(payment.amount), always recomputed
- a credit leg absorbs exactly the outstanding balance
- a cash tender above the balance is never recorded directly; it raises
  CashOverpayment and must go through the change confirmation flow
- any other method may not exceed the balance
- finalize allowed iff remaining_balance <= 0 OR a credit leg exists

The ledger lives in memory until finalize; removing legs is always allowed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from payments.constants import METHOD_CASH, METHOD_CREDIT
from payments.services.catalog import (
    PaymentMethodCatalog,
    default_catalog,
    is_supported_method,
    normalize_method,
)
from sales.services.exceptions import (
    AmountNotPositive,
    CashOverpayment,
    OverpaymentNotAllowed,
    PaymentNotFound,
    ReferenceRequired,
    UnsupportedPaymentMethod,
)
from sales.services.totals import ZERO, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Payment:
    method: str
    amount: Decimal
    reference: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_credit(self) -> bool:
        return self.method == METHOD_CREDIT


class PaymentLedger:
    def __init__(self, total=ZERO, catalog: Optional[PaymentMethodCatalog] = None):
        self._total = to_decimal(total, field="total")
        self._catalog = catalog if catalog is not None else default_catalog()
        self._payments: list[Payment] = []

    # ---------------------------------------------------------
    # state
    # ---------------------------------------------------------

    @property
    def total(self) -> Decimal:
        return self._total

    @total.setter
    def total(self, value):
        self._total = to_decimal(value, field="total")

    @property
    def payments(self) -> tuple[Payment, ...]:
        return tuple(self._payments)

    @property
    def paid(self) -> Decimal:
        return sum((p.amount for p in self._payments), ZERO)

    @property
    def remaining_balance(self) -> Decimal:
        return self._total - self.paid

    @property
    def has_credit(self) -> bool:
        return any(p.is_credit for p in self._payments)

    @property
    def credit_amount(self) -> Decimal:
        return sum((p.amount for p in self._payments if p.is_credit), ZERO)

    def can_finalize(self) -> bool:
        return self.remaining_balance <= ZERO or self.has_credit

    def requires_reference(self, method: str) -> bool:
        rule = self._catalog.get(normalize_method(method))
        return bool(rule and rule.requires_reference)

    # ---------------------------------------------------------
    # mutations
    # ---------------------------------------------------------

    def add_payment(self, method, amount=None, reference: Optional[str] = None) -> Payment:
        m = normalize_method(method)
        if not is_supported_method(m):
            raise UnsupportedPaymentMethod(f"Unsupported payment method: {method}")

        ref = str(reference or "").strip()
        remaining = self.remaining_balance

        if m != METHOD_CREDIT:
            try:
                amt = to_decimal(amount)
            except ValueError as exc:
                raise AmountNotPositive("Payment amount must be greater than 0") from exc
            if amt <= ZERO:
                raise AmountNotPositive("Payment amount must be greater than 0")

        if self.requires_reference(m) and not ref:
            raise ReferenceRequired(f"A reference is required for {m} payments")

        self._require_balance_due()

        if m == METHOD_CREDIT:
            amt = remaining
        elif amt > remaining:
            if m == METHOD_CASH:
                raise CashOverpayment(amt, remaining)
            raise OverpaymentNotAllowed("Payment amount cannot exceed remaining balance")

        return self._append(Payment(method=m, amount=amt, reference=ref))

    def settle_balance(self, method, reference: str = "") -> Payment:
        """
        Record one leg for exactly the outstanding balance.

        Used by the cash change confirmation and the mobile money flow,
        both of which have already validated the tender on their own terms.
        """
        m = normalize_method(method)
        if not is_supported_method(m):
            raise UnsupportedPaymentMethod(f"Unsupported payment method: {method}")
        self._require_balance_due()
        return self._append(Payment(method=m, amount=self.remaining_balance, reference=reference))

    def _require_balance_due(self) -> None:
        # a zero or negative balance (discount above subtotal) takes no further legs
        if self.remaining_balance <= ZERO:
            raise OverpaymentNotAllowed("Nothing left to pay on this transaction")

    def remove_payment(self, payment_id: str) -> Decimal:
        for idx, payment in enumerate(self._payments):
            if payment.id == payment_id:
                del self._payments[idx]
                logger.info(
                    "Payment removed",
                    extra={"payment_id": payment_id, "method": payment.method, "amount": str(payment.amount)},
                )
                return self.remaining_balance
        raise PaymentNotFound(f"Payment {payment_id} not found")

    def clear(self) -> None:
        self._payments.clear()

    def _append(self, payment: Payment) -> Payment:
        self._payments.append(payment)
        logger.info(
            "Payment added",
            extra={
                "payment_id": payment.id,
                "method": payment.method,
                "amount": str(payment.amount),
                "remaining_balance": str(self.remaining_balance),
            },
        )
        return payment
