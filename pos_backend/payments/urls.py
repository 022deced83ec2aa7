# payments/urls.py

from django.urls import path

from payments.views.methods import PaymentMethodListView
from payments.views.mpesa import MpesaCallbackView, MpesaStatusView, MpesaStkPushView

urlpatterns = [
    path("methods/", PaymentMethodListView.as_view(), name="payment-methods"),
    path("mpesa/stk-push/", MpesaStkPushView.as_view(), name="mpesa-stk-push"),
    path("mpesa/status/<str:checkout_id>/", MpesaStatusView.as_view(), name="mpesa-status"),
    path("mpesa/callback/", MpesaCallbackView.as_view(), name="mpesa-callback"),
]
