# payments/services/mobile_money.py

"""
MOBILE MONEY PAYMENT FLOW (BOUNDED POLLING)

The gateway is an external collaborator reached through two calls:
- initiate(amount, phone, reference) -> checkout_id        (GatewayError on failure)
- poll_status(checkout_id) -> GatewayStatus(pending | success | failed)

This flow owns the loop around them:
- poll every `poll_interval` seconds, for at most `timeout` seconds
- stop at the first terminal state
- success  -> exactly one mobile_money leg for the outstanding balance
- failed / timeout / cancelled -> ledger untouched

Terminal outcomes are returned (not raised) so callers can branch on
`outcome.status`; `outcome.raise_for_status()` converts a non-success
outcome into its GatewayFailed / GatewayTimeout / UserCancelledPayment error.

Time is injected (Clock) so tests drive the loop with a fake clock.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from payments.constants import METHOD_MOBILE_MONEY
from sales.services.exceptions import (
    CheckoutError,
    GatewayError,
    GatewayFailed,
    GatewayTimeout,
    UserCancelledPayment,
)
from sales.services.payment_ledger import Payment, PaymentLedger
from sales.services.totals import ZERO

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

OUTCOME_SUCCESS = "success"
OUTCOME_FAILED = "failed"
OUTCOME_TIMEOUT = "timeout"
OUTCOME_CANCELLED = "cancelled"

DEFAULT_POLL_INTERVAL = 3
DEFAULT_TIMEOUT = 60


@dataclass(frozen=True)
class GatewayStatus:
    status: str
    transaction_id: str = ""
    receipt: str = ""
    message: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in (STATUS_SUCCESS, STATUS_FAILED)


class MobileMoneyGateway(Protocol):
    def initiate(self, *, amount: Decimal, phone: str, reference: str, description: str = "") -> str: ...

    def poll_status(self, checkout_id: str) -> GatewayStatus: ...


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class CancellationToken:
    """Thread-safe flag a cashier (or another thread) trips to stop polling."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class MobileMoneyOutcome:
    status: str
    checkout_id: str = ""
    payment: Optional[Payment] = None
    transaction_id: str = ""
    receipt: str = ""
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == OUTCOME_SUCCESS

    def raise_for_status(self) -> None:
        if self.status == OUTCOME_FAILED:
            raise GatewayFailed(self.message or "Mobile money payment failed")
        if self.status == OUTCOME_TIMEOUT:
            raise GatewayTimeout(self.message or "Mobile money payment timed out")
        if self.status == OUTCOME_CANCELLED:
            raise UserCancelledPayment(self.message or "Mobile money payment cancelled")


class MobileMoneyPaymentFlow:
    def __init__(
        self,
        ledger: PaymentLedger,
        gateway: MobileMoneyGateway,
        *,
        clock: Optional[Clock] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if poll_interval <= 0 or timeout <= 0:
            raise ValueError("poll_interval and timeout must be positive")
        self._ledger = ledger
        self._gateway = gateway
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._token: Optional[CancellationToken] = None

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()

    # The two gateway calls are exposed for callers that drive polling
    # themselves (e.g. a browser polling the status endpoint).
    def initiate(self, *, phone: str, reference: str, description: str = "Payment") -> str:
        amount = self._ledger.remaining_balance
        if amount <= ZERO:
            raise CheckoutError("Nothing left to pay on this transaction")
        return self._gateway.initiate(
            amount=amount, phone=phone, reference=reference, description=description
        )

    def poll_status(self, checkout_id: str) -> GatewayStatus:
        return self._gateway.poll_status(checkout_id)

    def confirm(self, checkout_id: str) -> MobileMoneyOutcome:
        """
        Settle a payment the caller initiated and polled on its own.

        One status read: success records the leg for the outstanding balance,
        pending or failed returns a failed outcome. GatewayError propagates.
        """
        status = self._gateway.poll_status(checkout_id)
        if status.status == STATUS_SUCCESS:
            return self._succeeded(checkout_id, status)

        if status.status == STATUS_PENDING:
            message = "Mobile money payment has not been completed yet"
        else:
            message = status.message or "Payment failed"
        logger.warning(
            "Mobile money payment not confirmed",
            extra={"checkout_id": checkout_id, "gateway_status": status.status},
        )
        return MobileMoneyOutcome(status=OUTCOME_FAILED, checkout_id=checkout_id, message=message)

    def run(
        self,
        *,
        phone: str,
        reference: str,
        description: str = "Payment",
        cancel_token: Optional[CancellationToken] = None,
    ) -> MobileMoneyOutcome:
        token = cancel_token or CancellationToken()
        self._token = token
        try:
            return self._run(phone=phone, reference=reference, description=description, token=token)
        finally:
            self._token = None

    def _run(self, *, phone, reference, description, token: CancellationToken) -> MobileMoneyOutcome:
        if token.cancelled:
            return self._cancelled("")

        try:
            checkout_id = self.initiate(phone=phone, reference=reference, description=description)
        except CheckoutError as exc:
            # rejected, unreachable or nothing owed: all end the flow as failed
            logger.warning(
                "Mobile money initiation failed",
                extra={"reference": reference, "reason": str(exc), "code": exc.code},
            )
            return MobileMoneyOutcome(status=OUTCOME_FAILED, message=str(exc))

        logger.info("Mobile money payment initiated", extra={"checkout_id": checkout_id, "reference": reference})
        deadline = self._clock.monotonic() + self._timeout

        while True:
            if token.cancelled:
                return self._cancelled(checkout_id)

            remaining_time = deadline - self._clock.monotonic()
            if remaining_time <= 0:
                logger.warning("Mobile money payment timed out", extra={"checkout_id": checkout_id})
                return MobileMoneyOutcome(
                    status=OUTCOME_TIMEOUT,
                    checkout_id=checkout_id,
                    message="Payment request timed out. Please try again.",
                )

            self._clock.sleep(min(self._poll_interval, remaining_time))
            if token.cancelled:
                return self._cancelled(checkout_id)

            try:
                status = self._gateway.poll_status(checkout_id)
            except GatewayError as exc:
                # transient status-check failure; keep polling until the deadline
                logger.warning(
                    "Mobile money status check failed",
                    extra={"checkout_id": checkout_id, "reason": str(exc)},
                )
                continue

            if status.status == STATUS_SUCCESS:
                return self._succeeded(checkout_id, status)
            if status.status == STATUS_FAILED:
                logger.warning(
                    "Mobile money payment failed",
                    extra={"checkout_id": checkout_id, "reason": status.message},
                )
                return MobileMoneyOutcome(
                    status=OUTCOME_FAILED,
                    checkout_id=checkout_id,
                    message=status.message or "Payment failed",
                )

    def _succeeded(self, checkout_id: str, status: GatewayStatus) -> MobileMoneyOutcome:
        transaction_ref = status.receipt or status.transaction_id or checkout_id
        payment = self._ledger.settle_balance(
            METHOD_MOBILE_MONEY,
            reference=f"M-Pesa Payment - Transaction: {transaction_ref}",
        )
        logger.info(
            "Mobile money payment completed",
            extra={"checkout_id": checkout_id, "receipt": status.receipt, "amount": str(payment.amount)},
        )
        return MobileMoneyOutcome(
            status=OUTCOME_SUCCESS,
            checkout_id=checkout_id,
            payment=payment,
            transaction_id=status.transaction_id,
            receipt=status.receipt,
            message=status.message or "Payment completed successfully",
        )

    def _cancelled(self, checkout_id: str) -> MobileMoneyOutcome:
        logger.info("Mobile money payment cancelled by user", extra={"checkout_id": checkout_id})
        return MobileMoneyOutcome(
            status=OUTCOME_CANCELLED,
            checkout_id=checkout_id,
            message="Payment cancelled by user",
        )
