from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from business.models import BusinessSettings, Location
from payments.models import MpesaTransaction, PaymentMethod
from sales.models import AccountsReceivable, Customer, Sale, SalePayment
from sales.services.exceptions import PersistenceFailed

User = get_user_model()


class CheckoutAPITests(TestCase):
    """
    API contract:
    - 201 + sale payload on success
    - {"error": {"code", "message"}} envelope on every rejection
    """

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="cashier", password="pass")
        self.client.force_authenticate(self.user)

        self.location = Location.objects.create(name="Main Shop")
        self.customer = Customer.objects.create(name="Jane", email="jane@example.com")

    def payload(self, payments, **overrides):
        data = {
            "location_id": str(self.location.id),
            "items": [
                {"product_id": "SKU-1", "quantity": 2, "unit_price": "250.00", "product_name": "Sugar"},
                {"product_id": "SKU-2", "quantity": 1, "unit_price": "500.00"},
            ],
            "payments": payments,
        }
        data.update(overrides)
        return data

    def post(self, data):
        return self.client.post("/api/sales/checkout/", data, format="json")

    # =====================================================
    # SUCCESS PATHS
    # =====================================================

    def test_split_payment_checkout(self):
        res = self.post(
            self.payload(
                [
                    {"method": "card", "amount": "600.00", "reference": "AUTH1"},
                    {"method": "cash", "amount": "400.00"},
                ]
            )
        )

        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(res.data["status"], Sale.STATUS_COMPLETED)
        self.assertEqual(res.data["total_amount"], "1000.00")
        self.assertEqual(len(res.data["items"]), 2)
        self.assertEqual([p["method"] for p in res.data["payments"]], ["card", "cash"])
        self.assertEqual(res.data["cashier"], self.user.id)

    def test_cash_change_with_confirmation(self):
        res = self.post(self.payload([{"method": "cash", "amount": "1500.00", "confirm_change": True}]))

        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(len(res.data["payments"]), 1)
        leg = res.data["payments"][0]
        self.assertEqual(leg["amount"], "1000.00")
        self.assertIn("Change: KES 500.00", leg["reference"])

    def test_credit_checkout_creates_receivable(self):
        res = self.post(
            self.payload(
                [{"method": "cash", "amount": "200.00"}, {"method": "credit"}],
                customer_id=str(self.customer.id),
            )
        )

        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(res.data["status"], Sale.STATUS_PENDING)
        self.assertEqual(res.data["receivable"]["amount_due"], "800.00")
        self.assertEqual(AccountsReceivable.objects.count(), 1)

    @override_settings(POS={"RECEIPT_EMAIL_ENABLED": True})
    def test_receipt_is_emailed_to_customer(self):
        res = self.post(
            self.payload([{"method": "cash", "amount": "1000.00"}], customer_id=str(self.customer.id))
        )

        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["jane@example.com"])
        self.assertIn(res.data["receipt_number"], mail.outbox[0].subject)

    def test_business_settings_drive_auto_tax(self):
        BusinessSettings.objects.create(default_tax_rate=Decimal("16.00"))

        res = self.post(self.payload([{"method": "cash", "amount": "1160.00"}]))

        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(res.data["tax_amount"], "160.00")
        self.assertEqual(res.data["total_amount"], "1160.00")

    # =====================================================
    # REJECTIONS
    # =====================================================

    def test_cash_overpayment_without_confirmation_is_409(self):
        res = self.post(self.payload([{"method": "cash", "amount": "1500.00"}]))

        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["code"], "CASH_OVERPAYMENT")
        self.assertEqual(Decimal(res.data["error"]["change_due"]), Decimal("500"))
        self.assertFalse(Sale.objects.exists())

    def test_incomplete_payment_is_400(self):
        res = self.post(self.payload([{"method": "cash", "amount": "999.99"}]))

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "PAYMENT_INCOMPLETE")

    def test_card_without_reference_is_400(self):
        res = self.post(self.payload([{"method": "card", "amount": "1000.00"}]))

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "REFERENCE_REQUIRED")

    def test_configured_catalog_replaces_default(self):
        PaymentMethod.objects.create(name="Cash", type="cash")
        PaymentMethod.objects.create(name="Card", type="card", requires_reference=False)

        res = self.post(self.payload([{"method": "card", "amount": "1000.00"}]))

        self.assertEqual(res.status_code, 201, res.data)

    def test_credit_without_customer_is_400(self):
        res = self.post(self.payload([{"method": "credit"}]))

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "CUSTOMER_REQUIRED_FOR_CREDIT")

    def test_no_items_is_400(self):
        res = self.post(self.payload([], items=[]))

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "NO_LINE_ITEMS")

    def test_persistence_failure_is_503(self):
        with mock.patch(
            "sales.views.checkout.DjangoSaleStore.commit",
            side_effect=PersistenceFailed("database unavailable"),
        ):
            res = self.post(self.payload([{"method": "cash", "amount": "1000.00"}]))

        self.assertEqual(res.status_code, 503)
        self.assertEqual(res.data["error"]["code"], "PERSISTENCE_FAILED")

    def test_unknown_location_is_400(self):
        res = self.post(
            self.payload([{"method": "cash", "amount": "1000.00"}], location_id="0b5cbb44-3f0e-4d38-9c39-6a4f3b0e2c11")
        )

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "LOCATION_REQUIRED")
        self.assertFalse(Sale.objects.exists())

    def test_inactive_location_is_400(self):
        self.location.is_active = False
        self.location.save(update_fields=["is_active"])

        with self.assertNoLogs("sales.services.checkout_session", level="ERROR"):
            res = self.post(self.payload([{"method": "cash", "amount": "1000.00"}]))

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "LOCATION_REQUIRED")

    def test_inactive_customer_on_credit_is_400(self):
        self.customer.is_active = False
        self.customer.save(update_fields=["is_active"])

        res = self.post(self.payload([{"method": "credit"}], customer_id=str(self.customer.id)))

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "CUSTOMER_REQUIRED_FOR_CREDIT")
        self.assertFalse(AccountsReceivable.objects.exists())

    def test_payment_after_balance_is_covered_is_400(self):
        res = self.post(
            self.payload(
                [{"method": "cash", "amount": "1000.00"}, {"method": "cash", "amount": "10.00", "confirm_change": True}]
            )
        )

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "OVERPAYMENT_NOT_ALLOWED")
        self.assertFalse(Sale.objects.exists())

    def test_requires_authentication(self):
        res = APIClient().post("/api/sales/checkout/", self.payload([]), format="json")
        self.assertEqual(res.status_code, 401)


class CheckoutMobileMoneyAPITests(TestCase):
    """Mobile money legs are recorded only for STK pushes the callback confirmed."""

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(User.objects.create_user(username="cashier", password="pass"))
        self.location = Location.objects.create(name="Main Shop")

    def mpesa_tx(self, checkout_id, status, receipt="", description=""):
        return MpesaTransaction.objects.create(
            checkout_request_id=checkout_id,
            phone_number="254712345678",
            amount=Decimal("600"),
            status=status,
            mpesa_receipt_number=receipt,
            result_description=description,
        )

    def post(self, payments):
        return self.client.post(
            "/api/sales/checkout/",
            {
                "location_id": str(self.location.id),
                "items": [{"product_id": "SKU-1", "quantity": 1, "unit_price": "1000.00"}],
                "payments": payments,
            },
            format="json",
        )

    def test_confirmed_push_settles_remaining_balance(self):
        self.mpesa_tx("ws_CO_1", MpesaTransaction.STATUS_SUCCESS, receipt="QKA1")

        res = self.post(
            [
                {"method": "cash", "amount": "400.00"},
                {"method": "mobile_money", "amount": "1.00", "checkout_request_id": "ws_CO_1"},
            ]
        )

        self.assertEqual(res.status_code, 201, res.data)
        leg = res.data["payments"][1]
        self.assertEqual(leg["method"], "mobile_money")
        self.assertEqual(leg["amount"], "600.00")
        self.assertEqual(leg["reference"], "M-Pesa Payment - Transaction: QKA1")

    def test_pending_push_is_rejected(self):
        self.mpesa_tx("ws_CO_2", MpesaTransaction.STATUS_PENDING)

        res = self.post([{"method": "mobile_money", "checkout_request_id": "ws_CO_2"}])

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "GATEWAY_FAILED")
        self.assertFalse(Sale.objects.exists())

    def test_failed_push_is_rejected(self):
        self.mpesa_tx("ws_CO_3", MpesaTransaction.STATUS_FAILED, description="Insufficient funds")

        res = self.post([{"method": "mobile_money", "checkout_request_id": "ws_CO_3"}])

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "GATEWAY_FAILED")
        self.assertIn("Insufficient funds", res.data["error"]["message"])

    def test_unknown_checkout_id_is_rejected(self):
        res = self.post([{"method": "mobile_money", "checkout_request_id": "ws_CO_missing"}])

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "GATEWAY_FAILED")

    def test_leg_without_checkout_id_fails_validation(self):
        res = self.post(
            [{"method": "mobile_money", "amount": "400.00"}, {"method": "cash", "amount": "600.00"}]
        )

        self.assertEqual(res.status_code, 400)
        self.assertIn("checkout_request_id", str(res.data))
        self.assertFalse(SalePayment.objects.exists())

    def test_receipt_cannot_pay_two_sales(self):
        self.mpesa_tx("ws_CO_4", MpesaTransaction.STATUS_SUCCESS, receipt="QKA4")
        leg = [{"method": "mobile_money", "checkout_request_id": "ws_CO_4"}]

        self.assertEqual(self.post(leg).status_code, 201)
        res = self.post(leg)

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "GATEWAY_FAILED")
        self.assertEqual(Sale.objects.count(), 1)

class TotalsAPITests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(User.objects.create_user(username="cashier", password="pass"))

    def test_totals_for_draft(self):
        res = self.client.post(
            "/api/sales/totals/",
            {
                "items": [{"product_id": "SKU-1", "quantity": 3, "unit_price": "100.00"}],
                "discount": "50.00",
                "tax": "25.00",
                "shipping": "10.00",
            },
            format="json",
        )

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["subtotal"], "300.00")
        self.assertEqual(res.data["total"], "285.00")
        self.assertFalse(res.data["auto_tax"])

    def test_negative_discount_is_rejected(self):
        res = self.client.post(
            "/api/sales/totals/",
            {"items": [], "discount": "-1"},
            format="json",
        )
        self.assertEqual(res.status_code, 400)


class SalesHistoryAPITests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(User.objects.create_user(username="manager", password="pass"))

        self.main = Location.objects.create(name="Main")
        self.branch = Location.objects.create(name="Branch")
        self.completed = Sale.objects.create(location=self.main, total_amount=Decimal("100.00"))
        self.pending = Sale.objects.create(
            location=self.branch,
            total_amount=Decimal("50.00"),
            status=Sale.STATUS_PENDING,
        )

    def test_list_filters_by_status_and_location(self):
        res = self.client.get("/api/sales/sales/", {"status": Sale.STATUS_PENDING})
        self.assertEqual(res.status_code, 200)
        self.assertEqual([row["id"] for row in res.data["results"]], [str(self.pending.id)])

        res = self.client.get("/api/sales/sales/", {"location": str(self.main.id)})
        self.assertEqual([row["id"] for row in res.data["results"]], [str(self.completed.id)])

    def test_retrieve_sale(self):
        res = self.client.get(f"/api/sales/sales/{self.completed.id}/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["receipt_number"], self.completed.receipt_number)
        self.assertEqual(res.data["customer_name"], "Walk-in")
        self.assertIsNone(res.data["receivable"])
