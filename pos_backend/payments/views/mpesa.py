# payments/views/mpesa.py

"""
M-PESA API VIEWS

- POST /api/payments/mpesa/stk-push/              (staff) send the STK prompt
- GET  /api/payments/mpesa/status/<checkout_id>/  (staff) poll the stored status
- POST /api/payments/mpesa/callback/              (Daraja) AllowAny + throttled

The till drives the polling loop against the status endpoint; the
callback is the only writer of the terminal state.
"""

from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiExample, extend_schema
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from payments.models import MpesaTransaction
from payments.serializers import MpesaCallbackAckSerializer, MpesaStatusSerializer, StkPushInputSerializer
from payments.services.mpesa import DarajaGateway, InvalidCallback, apply_callback
from sales.services.exceptions import GatewayError
from sales.views.errors import checkout_error_response, error_response

logger = logging.getLogger(__name__)


class WebhookThrottle(AnonRateThrottle):
    scope = "webhook"


class MpesaStkPushView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=StkPushInputSerializer,
        responses={200: dict},
        examples=[
            OpenApiExample(
                "STK push",
                value={
                    "phone_number": "0712345678",
                    "amount": "1500.00",
                    "reference": "R482913057",
                    "description": "Payment",
                },
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        ser = StkPushInputSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            checkout_id = DarajaGateway().initiate(
                amount=data["amount"],
                phone=data["phone_number"],
                reference=data["reference"],
                description=data.get("description") or "Payment",
            )
        except GatewayError as exc:
            logger.warning("STK push rejected", extra={"reference": data["reference"], "reason": str(exc)})
            return checkout_error_response(exc)

        return Response(
            {
                "success": True,
                "checkout_request_id": checkout_id,
                "message": "STK push sent successfully",
            },
            status=status.HTTP_200_OK,
        )


class MpesaStatusView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = MpesaStatusSerializer

    @extend_schema(responses={200: MpesaStatusSerializer})
    def get(self, request, checkout_id: str):
        tx = get_object_or_404(MpesaTransaction, checkout_request_id=checkout_id)
        return Response(MpesaStatusSerializer(tx).data, status=status.HTTP_200_OK)


class MpesaCallbackView(APIView):
    """
    Daraja result callback.

    Always acknowledges a well-formed payload (even for unknown ids) so
    Safaricom stops retrying; malformed payloads get a 400 envelope.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [WebhookThrottle]
    parser_classes = [JSONParser]

    @extend_schema(request=dict, responses={200: MpesaCallbackAckSerializer})
    def post(self, request):
        try:
            apply_callback(request.data)
        except InvalidCallback as exc:
            logger.warning("Invalid M-Pesa callback received")
            return error_response(code=exc.code, message=str(exc), http_status=status.HTTP_400_BAD_REQUEST)

        return Response({"ResultCode": 0, "ResultDesc": "Accepted"}, status=status.HTTP_200_OK)
