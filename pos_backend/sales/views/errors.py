# sales/views/errors.py

"""
API ERROR NORMALIZATION

Every checkout / payment failure leaves the API as:
    {"error": {"code": "...", "message": "..."}}
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from sales.services.exceptions import (
    CashOverpayment,
    CheckoutError,
    FinalizeInProgress,
    GatewayError,
    GatewayFailed,
    GatewayTimeout,
    PersistenceFailed,
)


def error_response(*, code: str, message: str, http_status: int, **extra):
    body = {"code": code, "message": message}
    body.update(extra)
    return Response({"error": body}, status=http_status)


def checkout_error_response(exc: CheckoutError):
    if isinstance(exc, CashOverpayment):
        return error_response(
            code=exc.code,
            message=str(exc),
            http_status=status.HTTP_409_CONFLICT,
            amount_tendered=str(exc.amount_tendered),
            remaining_balance=str(exc.remaining_balance),
            change_due=str(exc.change_due),
        )
    if isinstance(exc, FinalizeInProgress):
        http_status = status.HTTP_409_CONFLICT
    elif isinstance(exc, PersistenceFailed):
        http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, GatewayTimeout):
        http_status = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(exc, GatewayError) and not isinstance(exc, GatewayFailed):
        http_status = status.HTTP_502_BAD_GATEWAY
    else:
        http_status = status.HTTP_400_BAD_REQUEST
    return error_response(code=exc.code, message=str(exc), http_status=http_status)
