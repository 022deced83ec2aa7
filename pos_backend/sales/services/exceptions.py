# sales/services/exceptions.py

"""
CHECKOUT SERVICE ERRORS

Every error is locally recoverable: the cashier fixes the input and retries.
Each class carries a stable `code`, which the API layer puts in the
{"error": {"code", "message"}} envelope.
"""

from __future__ import annotations

from decimal import Decimal


class CheckoutError(Exception):
    """Base checkout exception"""

    code = "CHECKOUT_FAILED"


class InvalidLineItem(CheckoutError):
    code = "INVALID_LINE_ITEM"


# ============================================================
# PAYMENT LEDGER
# ============================================================


class PaymentRejected(CheckoutError):
    """A payment leg was not added to the ledger."""

    code = "PAYMENT_REJECTED"


class UnsupportedPaymentMethod(PaymentRejected):
    code = "UNSUPPORTED_PAYMENT_METHOD"


class AmountNotPositive(PaymentRejected):
    code = "AMOUNT_NOT_POSITIVE"


class ReferenceRequired(PaymentRejected):
    code = "REFERENCE_REQUIRED"


class OverpaymentNotAllowed(PaymentRejected):
    code = "OVERPAYMENT_NOT_ALLOWED"


class PaymentNotFound(PaymentRejected):
    code = "PAYMENT_NOT_FOUND"


class CashOverpayment(PaymentRejected):
    """
    Not a failure: the tender exceeds the balance and the change must be
    confirmed (see sales.services.cash_change) before anything is recorded.
    """

    code = "CASH_OVERPAYMENT"

    def __init__(self, amount_tendered: Decimal, remaining_balance: Decimal):
        self.amount_tendered = amount_tendered
        self.remaining_balance = remaining_balance
        super().__init__(
            f"Cash tendered ({amount_tendered}) exceeds the balance due "
            f"({remaining_balance}); confirm change of {self.change_due}."
        )

    @property
    def change_due(self) -> Decimal:
        return self.amount_tendered - self.remaining_balance


class NoPendingTender(CheckoutError):
    code = "NO_PENDING_TENDER"


# ============================================================
# FINALIZE
# ============================================================


class NoLineItems(CheckoutError):
    code = "NO_LINE_ITEMS"


class LocationRequired(CheckoutError):
    code = "LOCATION_REQUIRED"


class CustomerRequiredForCredit(CheckoutError):
    code = "CUSTOMER_REQUIRED_FOR_CREDIT"


class PaymentIncomplete(CheckoutError):
    code = "PAYMENT_INCOMPLETE"


class FinalizeInProgress(CheckoutError):
    code = "FINALIZE_IN_PROGRESS"


class PersistenceFailed(CheckoutError):
    code = "PERSISTENCE_FAILED"


# ============================================================
# MOBILE MONEY GATEWAY
# ============================================================


class GatewayError(CheckoutError):
    code = "GATEWAY_ERROR"


class GatewayFailed(GatewayError):
    code = "GATEWAY_FAILED"


class GatewayTimeout(GatewayError):
    code = "GATEWAY_TIMEOUT"


class UserCancelledPayment(GatewayError):
    code = "USER_CANCELLED_PAYMENT"
