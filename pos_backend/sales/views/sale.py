# sales/views/sale.py

"""
SALES HISTORY (STAFF)

- GET /api/sales/sales/          list; filters: status, sale_type, location, customer
- GET /api/sales/sales/<uuid>/   retrieve (receipt payload)
"""

from __future__ import annotations

from django_filters import rest_framework as filters
from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from sales.models import Sale
from sales.serializers import SaleSerializer


class SaleFilter(filters.FilterSet):
    date_from = filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    date_to = filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    receipt_number = filters.CharFilter(field_name="receipt_number", lookup_expr="icontains")

    class Meta:
        model = Sale
        fields = ["status", "sale_type", "location", "customer"]


class SaleViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = SaleFilter

    def get_queryset(self):
        return (
            Sale.objects.all()
            .select_related("location", "customer", "cashier", "receivable")
            .prefetch_related("items", "payments")
            .order_by("-created_at")
        )
