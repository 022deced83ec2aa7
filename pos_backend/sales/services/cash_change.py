# sales/services/cash_change.py

"""
CASH CHANGE CONFIRMATION (TWO-STEP COMMIT)

States:
    IDLE --tender(amount > balance)--> PENDING_CONFIRMATION{amount_tendered, total}
    PENDING_CONFIRMATION --confirm()--> IDLE   (one cash leg of `total` recorded)
    PENDING_CONFIRMATION --cancel()--> IDLE    (nothing recorded)

`total` is the outstanding balance at the moment of the tender.
Change (amount_tendered - total) is informational only and never recorded
as a payment; it only appears in the leg's reference text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from payments.constants import METHOD_CASH
from sales.services.exceptions import CashOverpayment, CheckoutError, NoPendingTender
from sales.services.payment_ledger import Payment, PaymentLedger

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_PENDING_CONFIRMATION = "pending_confirmation"


@dataclass(frozen=True)
class PendingTender:
    amount_tendered: Decimal
    total: Decimal

    @property
    def change_due(self) -> Decimal:
        return self.amount_tendered - self.total


def _plain_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"


class CashChangeFlow:
    def __init__(
        self,
        ledger: PaymentLedger,
        *,
        format_amount: Optional[Callable[[Decimal], str]] = None,
    ):
        self._ledger = ledger
        self._format = format_amount or _plain_amount
        self._pending: Optional[PendingTender] = None

    @property
    def state(self) -> str:
        return STATE_PENDING_CONFIRMATION if self._pending else STATE_IDLE

    @property
    def pending(self) -> Optional[PendingTender]:
        return self._pending

    def tender(self, amount) -> Optional[Payment]:
        """
        Submit a cash amount.

        Returns the recorded leg when the amount fits the balance; returns
        None and moves to PENDING_CONFIRMATION when change is due.
        """
        if self._pending is not None:
            raise CheckoutError("A cash tender is already awaiting confirmation")
        try:
            return self._ledger.add_payment(METHOD_CASH, amount)
        except CashOverpayment as signal:
            self.begin(signal)
            return None

    def begin(self, signal: CashOverpayment) -> PendingTender:
        self._pending = PendingTender(
            amount_tendered=signal.amount_tendered,
            total=signal.remaining_balance,
        )
        logger.info(
            "Cash tender awaiting change confirmation",
            extra={
                "amount_tendered": str(signal.amount_tendered),
                "total": str(signal.remaining_balance),
                "change_due": str(signal.change_due),
            },
        )
        return self._pending

    def confirm(self) -> Payment:
        pending = self._require_pending()

        if self._ledger.remaining_balance != pending.total:
            # The draft changed underneath the dialog; make the cashier re-tender.
            self._pending = None
            raise CheckoutError(
                "The balance changed while awaiting change confirmation; tender again."
            )

        reference = (
            f"Cash received: {self._format(pending.amount_tendered)}"
            f" - Change: {self._format(pending.change_due)}"
        )
        payment = self._ledger.settle_balance(METHOD_CASH, reference=reference)
        self._pending = None
        return payment

    def cancel(self) -> None:
        self._require_pending()
        logger.info("Cash tender cancelled")
        self._pending = None

    def _require_pending(self) -> PendingTender:
        if self._pending is None:
            raise NoPendingTender("No cash tender is awaiting confirmation")
        return self._pending
