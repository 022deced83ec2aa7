# sales/urls.py

"""
SALES API URLS

Explicit non-PK routes are registered BEFORE router URLs.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from sales.views.checkout import CheckoutView, TotalsView
from sales.views.sale import SaleViewSet

router = DefaultRouter()
router.register(r"sales", SaleViewSet, basename="sales")

urlpatterns = [
    path("totals/", TotalsView.as_view(), name="sales-totals"),
    path("checkout/", CheckoutView.as_view(), name="sales-checkout"),
    path("", include(router.urls)),
]
