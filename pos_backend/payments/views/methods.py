# payments/views/methods.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.serializers import PaymentMethodSerializer
from payments.services.catalog import load_payment_method_catalog


class PaymentMethodListView(APIView):
    """
    Tender types the till should offer.
    Falls back to the built-in set (cash, card, credit) when none are configured.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = PaymentMethodSerializer

    @extend_schema(responses={200: PaymentMethodSerializer(many=True)})
    def get(self, request):
        catalog = load_payment_method_catalog()
        return Response(PaymentMethodSerializer(catalog.all(), many=True).data)
