# payments/services/mpesa.py

"""
M-PESA (SAFARICOM DARAJA) GATEWAY

Implements the MobileMoneyGateway contract used by MobileMoneyPaymentFlow:
- initiate()     -> OAuth token + STK push; persists a pending MpesaTransaction
- poll_status()  -> reads the MpesaTransaction row back

settle_mobile_money_leg() is the checkout-side check: a mobile_money leg is
recorded only for a checkout the callback marked successful, once per receipt.

Daraja reports the outcome asynchronously to CALLBACK_URL;
apply_callback() folds that payload into the row:
    ResultCode 0    -> success (MpesaReceiptNumber from CallbackMetadata)
    ResultCode 1032 -> timeout (request cancelled / not answered on the handset)
    anything else   -> failed
"""

from __future__ import annotations

import base64
import json
import logging
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings
from django.db import transaction

from payments.constants import METHOD_MOBILE_MONEY
from payments.models import MpesaTransaction
from payments.services.mobile_money import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TIMEOUT,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SUCCESS,
    Clock,
    GatewayStatus,
    MobileMoneyGateway,
    MobileMoneyPaymentFlow,
)
from sales.services.exceptions import GatewayError, GatewayFailed
from sales.models import SalePayment
from sales.services.payment_ledger import Payment, PaymentLedger

logger = logging.getLogger(__name__)

SANDBOX_BASE = "https://sandbox.safaricom.co.ke"
PRODUCTION_BASE = "https://api.safaricom.co.ke"

RESULT_CODE_SUCCESS = 0
RESULT_CODE_CANCELLED = 1032

STATUS_MESSAGES = {
    MpesaTransaction.STATUS_PENDING: "Payment is being processed...",
    MpesaTransaction.STATUS_SUCCESS: "Payment completed successfully",
    MpesaTransaction.STATUS_FAILED: "Payment failed",
    MpesaTransaction.STATUS_TIMEOUT: "Payment request timed out",
}


class InvalidPhoneNumber(GatewayFailed):
    code = "INVALID_PHONE_NUMBER"


class InvalidCallback(GatewayError):
    code = "INVALID_CALLBACK"


def _mpesa_cfg() -> dict:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = payments.get("MPESA") if isinstance(payments, dict) else None
    return cfg if isinstance(cfg, dict) else {}


def normalize_phone(raw) -> str:
    """
    Normalize Kenyan numbers to 2547XXXXXXXX / 2541XXXXXXXX.

    0712345678, +254712345678, 254712345678 and 712345678 all normalize
    to 254712345678. Anything else raises InvalidPhoneNumber.
    """
    digits = re.sub(r"\D", "", str(raw or ""))
    if digits.startswith("0") and len(digits) == 10:
        digits = f"254{digits[1:]}"
    elif len(digits) == 9:
        digits = f"254{digits}"

    if not digits.startswith("254") or len(digits) != 12:
        raise InvalidPhoneNumber("Invalid phone number format. Use 2547XXXXXXXX.")
    return digits


def _whole_shillings(amount) -> int:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise GatewayFailed("amount must be a valid Decimal") from exc
    whole = int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if whole < 1:
        raise GatewayFailed("M-Pesa amount must be at least 1")
    return whole


def _timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d%H%M%S")


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode("utf-8")).decode("ascii")


def _request_json(method: str, url: str, *, headers: dict, body: dict | None = None, timeout: int = 25) -> dict[str, Any]:
    data = None
    if body is not None:
        data = json.dumps(body, ensure_ascii=False).encode("utf-8")

    req = Request(
        url,
        data=data,
        headers={"Content-Type": "application/json", "Accept": "application/json", **headers},
        method=method,
    )

    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except HTTPError as e:
        raw = e.read().decode("utf-8", errors="replace") if e.fp is not None else ""
        try:
            parsed = json.loads(raw) if raw else {}
        except ValueError:
            parsed = {}
        msg = ""
        if isinstance(parsed, dict):
            msg = parsed.get("errorMessage") or parsed.get("ResponseDescription") or ""
        raise GatewayFailed(f"M-Pesa HTTPError: {e.code} {msg or raw[:200]}".strip()) from e
    except URLError as e:
        raise GatewayError(f"M-Pesa URLError: {e}") from e

    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        raise GatewayError(f"M-Pesa returned non-JSON: {raw[:200]}") from exc

    if not isinstance(parsed, dict):
        raise GatewayError("M-Pesa returned an unexpected payload")
    return parsed


class DarajaGateway:
    def __init__(self, cfg: dict | None = None):
        cfg = cfg if cfg is not None else _mpesa_cfg()
        self.environment = (cfg.get("ENVIRONMENT") or "sandbox").strip().lower()
        self.consumer_key = (cfg.get("CONSUMER_KEY") or "").strip()
        self.consumer_secret = (cfg.get("CONSUMER_SECRET") or "").strip()
        self.shortcode = (cfg.get("SHORTCODE") or "").strip()
        self.passkey = (cfg.get("PASSKEY") or "").strip()
        self.callback_url = (cfg.get("CALLBACK_URL") or "").strip()

    @property
    def base_url(self) -> str:
        return PRODUCTION_BASE if self.environment == "production" else SANDBOX_BASE

    @property
    def is_configured(self) -> bool:
        return all(
            (self.consumer_key, self.consumer_secret, self.shortcode, self.passkey, self.callback_url)
        )

    def access_token(self) -> str:
        credentials = base64.b64encode(
            f"{self.consumer_key}:{self.consumer_secret}".encode("utf-8")
        ).decode("ascii")
        parsed = _request_json(
            "GET",
            f"{self.base_url}/oauth/v1/generate?grant_type=client_credentials",
            headers={"Authorization": f"Basic {credentials}"},
        )
        token = parsed.get("access_token")
        if not token:
            raise GatewayFailed("M-Pesa authentication failed")
        return token

    def initiate(self, *, amount, phone: str, reference: str, description: str = "") -> str:
        if not self.is_configured:
            raise GatewayFailed("M-Pesa is not configured")

        phone_number = normalize_phone(phone)
        whole = _whole_shillings(amount)
        if not str(reference or "").strip():
            raise GatewayFailed("A payment reference is required")

        timestamp = _timestamp()
        payload = {
            "BusinessShortCode": self.shortcode,
            "Password": stk_password(self.shortcode, self.passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": whole,
            "PartyA": phone_number,
            "PartyB": self.shortcode,
            "PhoneNumber": phone_number,
            "CallBackURL": self.callback_url,
            "AccountReference": str(reference)[:12],
            "TransactionDesc": (description or "Payment")[:13],
        }

        parsed = _request_json(
            "POST",
            f"{self.base_url}/mpesa/stkpush/v1/processrequest",
            headers={"Authorization": f"Bearer {self.access_token()}"},
            body=payload,
        )

        if str(parsed.get("ResponseCode")) != "0":
            raise GatewayFailed(
                parsed.get("ResponseDescription") or parsed.get("errorMessage") or "STK push failed"
            )

        checkout_id = parsed.get("CheckoutRequestID") or ""
        MpesaTransaction.objects.create(
            checkout_request_id=checkout_id,
            merchant_request_id=parsed.get("MerchantRequestID") or "",
            phone_number=phone_number,
            amount=Decimal(whole),
            reference=str(reference)[:100],
            description=(description or "")[:255],
        )
        logger.info("STK push sent", extra={"checkout_id": checkout_id, "reference": reference})
        return checkout_id

    def poll_status(self, checkout_id: str) -> GatewayStatus:
        tx = MpesaTransaction.objects.filter(checkout_request_id=checkout_id).first()
        if tx is None:
            raise GatewayError(f"M-Pesa transaction {checkout_id} not found")
        return gateway_status_for(tx)


def gateway_status_for(tx: MpesaTransaction) -> GatewayStatus:
    if tx.status == MpesaTransaction.STATUS_SUCCESS:
        return GatewayStatus(
            status=STATUS_SUCCESS,
            transaction_id=str(tx.id),
            receipt=tx.mpesa_receipt_number,
            message=STATUS_MESSAGES[tx.status],
        )
    if tx.status == MpesaTransaction.STATUS_PENDING:
        return GatewayStatus(status=STATUS_PENDING, transaction_id=str(tx.id), message=STATUS_MESSAGES[tx.status])
    return GatewayStatus(
        status=STATUS_FAILED,
        transaction_id=str(tx.id),
        message=tx.result_description or STATUS_MESSAGES.get(tx.status, "Payment failed"),
    )


def _callback_metadata(stk: dict) -> dict:
    items = ((stk.get("CallbackMetadata") or {}).get("Item")) or []
    return {item.get("Name"): item.get("Value") for item in items if isinstance(item, dict)}


@transaction.atomic
def apply_callback(payload) -> MpesaTransaction | None:
    """
    Fold a Daraja STK callback into its MpesaTransaction.

    Returns None for an unknown CheckoutRequestID. A row that already left
    PENDING is returned unchanged (Daraja may deliver the same callback twice).
    """
    body = (payload or {}).get("Body") if isinstance(payload, dict) else None
    stk = (body or {}).get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(stk, dict) or not stk.get("CheckoutRequestID"):
        raise InvalidCallback("Invalid callback structure")

    checkout_id = stk["CheckoutRequestID"]
    tx = MpesaTransaction.objects.select_for_update().filter(checkout_request_id=checkout_id).first()
    if tx is None:
        logger.warning("Callback for unknown M-Pesa transaction", extra={"checkout_id": checkout_id})
        return None

    if tx.is_terminal:
        logger.info("Duplicate M-Pesa callback ignored", extra={"checkout_id": checkout_id, "status": tx.status})
        return tx

    try:
        result_code = int(stk.get("ResultCode"))
    except (TypeError, ValueError):
        result_code = None

    if result_code == RESULT_CODE_SUCCESS:
        tx.status = MpesaTransaction.STATUS_SUCCESS
        tx.mpesa_receipt_number = str(_callback_metadata(stk).get("MpesaReceiptNumber") or "")[:50]
    elif result_code == RESULT_CODE_CANCELLED:
        tx.status = MpesaTransaction.STATUS_TIMEOUT
    else:
        tx.status = MpesaTransaction.STATUS_FAILED

    tx.result_code = result_code
    tx.result_description = str(stk.get("ResultDesc") or "")[:255]
    tx.save(
        update_fields=[
            "status",
            "result_code",
            "result_description",
            "mpesa_receipt_number",
            "updated_at",
        ]
    )

    logger.info(
        "M-Pesa callback applied",
        extra={"checkout_id": checkout_id, "status": tx.status, "result_code": result_code},
    )
    return tx


def mpesa_payment_flow(
    ledger: PaymentLedger,
    *,
    gateway: MobileMoneyGateway | None = None,
    clock: Clock | None = None,
) -> MobileMoneyPaymentFlow:
    """Polling flow wired to Daraja with the interval/timeout from settings.PAYMENTS."""
    payments = getattr(settings, "PAYMENTS", {}) or {}
    return MobileMoneyPaymentFlow(
        ledger,
        gateway if gateway is not None else DarajaGateway(),
        clock=clock,
        poll_interval=payments.get("MOBILE_MONEY_POLL_INTERVAL") or DEFAULT_POLL_INTERVAL,
        timeout=payments.get("MOBILE_MONEY_TIMEOUT") or DEFAULT_TIMEOUT,
    )


def settle_mobile_money_leg(
    ledger: PaymentLedger,
    checkout_id: str,
    *,
    gateway: MobileMoneyGateway | None = None,
) -> Payment:
    checkout_id = str(checkout_id or "").strip()
    if not MpesaTransaction.objects.filter(checkout_request_id=checkout_id).exists():
        raise GatewayFailed(f"Unknown M-Pesa checkout request: {checkout_id}")

    outcome = mpesa_payment_flow(ledger, gateway=gateway).confirm(checkout_id)
    outcome.raise_for_status()

    payment = outcome.payment
    if SalePayment.objects.filter(method=METHOD_MOBILE_MONEY, reference=payment.reference).exists():
        ledger.remove_payment(payment.id)
        raise GatewayFailed("This M-Pesa payment has already been applied to a sale")

    return payment
