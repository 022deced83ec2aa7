from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from payments.models import MpesaTransaction
from payments.services.mobile_money import STATUS_FAILED, STATUS_PENDING, STATUS_SUCCESS
from payments.services.mpesa import (
    PRODUCTION_BASE,
    SANDBOX_BASE,
    DarajaGateway,
    InvalidCallback,
    InvalidPhoneNumber,
    apply_callback,
    mpesa_payment_flow,
    normalize_phone,
    stk_password,
)
from sales.services.exceptions import GatewayError, GatewayFailed
from sales.services.payment_ledger import PaymentLedger

MPESA_CFG = {
    "ENVIRONMENT": "sandbox",
    "CONSUMER_KEY": "key",
    "CONSUMER_SECRET": "secret",
    "SHORTCODE": "174379",
    "PASSKEY": "passkey",
    "CALLBACK_URL": "https://pos.example.com/api/payments/mpesa/callback/",
}


def callback(checkout_id, result_code, receipt=None, desc="The service request is processed successfully."):
    stk = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_id,
        "ResultCode": result_code,
        "ResultDesc": desc,
    }
    if receipt:
        stk["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": 1000},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "PhoneNumber", "Value": 254712345678},
            ]
        }
    return {"Body": {"stkCallback": stk}}


class PhoneNormalizationTests(SimpleTestCase):
    def test_kenyan_formats(self):
        for raw in ("0712345678", "+254712345678", "254712345678", "712345678", "0712 345 678"):
            with self.subTest(raw=raw):
                self.assertEqual(normalize_phone(raw), "254712345678")

    def test_invalid_numbers(self):
        for raw in ("", "12345", "+1 415 555 0100", None):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidPhoneNumber):
                    normalize_phone(raw)

    def test_password_is_base64_of_shortcode_passkey_timestamp(self):
        self.assertEqual(stk_password("1", "2", "3"), "MTIz")

    def test_base_url_by_environment(self):
        self.assertEqual(DarajaGateway(MPESA_CFG).base_url, SANDBOX_BASE)
        self.assertEqual(DarajaGateway({**MPESA_CFG, "ENVIRONMENT": "production"}).base_url, PRODUCTION_BASE)


class DarajaGatewayTests(TestCase):
    def setUp(self):
        self.gateway = DarajaGateway(MPESA_CFG)

    def test_unconfigured_gateway_rejects(self):
        with self.assertRaises(GatewayFailed):
            DarajaGateway({}).initiate(amount=Decimal("10"), phone="0712345678", reference="R1")

    @mock.patch("payments.services.mpesa._request_json")
    def test_initiate_sends_stk_push_and_persists(self, request_json):
        request_json.side_effect = [
            {"access_token": "tok", "expires_in": "3599"},
            {
                "MerchantRequestID": "29115-1",
                "CheckoutRequestID": "ws_CO_1",
                "ResponseCode": "0",
                "ResponseDescription": "Success. Request accepted for processing",
            },
        ]

        checkout_id = self.gateway.initiate(amount=Decimal("999.50"), phone="0712345678", reference="R482913057")

        self.assertEqual(checkout_id, "ws_CO_1")
        method, url = request_json.call_args_list[1].args
        body = request_json.call_args_list[1].kwargs["body"]
        self.assertEqual(method, "POST")
        self.assertEqual(url, f"{SANDBOX_BASE}/mpesa/stkpush/v1/processrequest")
        self.assertEqual(body["Amount"], 1000)
        self.assertEqual(body["PhoneNumber"], "254712345678")
        self.assertEqual(body["BusinessShortCode"], "174379")
        self.assertEqual(request_json.call_args_list[1].kwargs["headers"]["Authorization"], "Bearer tok")

        tx = MpesaTransaction.objects.get(checkout_request_id="ws_CO_1")
        self.assertEqual(tx.status, MpesaTransaction.STATUS_PENDING)
        self.assertEqual(tx.phone_number, "254712345678")
        self.assertEqual(tx.amount, Decimal("1000"))

    @mock.patch("payments.services.mpesa._request_json")
    def test_rejected_stk_push(self, request_json):
        request_json.side_effect = [
            {"access_token": "tok"},
            {"ResponseCode": "1", "ResponseDescription": "Invalid Access Token"},
        ]

        with self.assertRaises(GatewayFailed):
            self.gateway.initiate(amount=Decimal("10"), phone="0712345678", reference="R1")
        self.assertFalse(MpesaTransaction.objects.exists())

    def test_poll_status_reads_transaction_row(self):
        tx = MpesaTransaction.objects.create(checkout_request_id="ws_CO_2", phone_number="254712345678")
        self.assertEqual(self.gateway.poll_status("ws_CO_2").status, STATUS_PENDING)

        apply_callback(callback("ws_CO_2", 0, receipt="QKJ3XYZ"))
        status = self.gateway.poll_status("ws_CO_2")
        self.assertEqual(status.status, STATUS_SUCCESS)
        self.assertEqual(status.receipt, "QKJ3XYZ")
        self.assertEqual(status.transaction_id, str(tx.id))

    def test_poll_status_unknown_checkout(self):
        with self.assertRaises(GatewayError):
            self.gateway.poll_status("missing")

    @override_settings(PAYMENTS={"MPESA": MPESA_CFG, "MOBILE_MONEY_POLL_INTERVAL": 5, "MOBILE_MONEY_TIMEOUT": 30})
    def test_flow_factory_uses_settings(self):
        clock = mock.Mock()
        clock.monotonic.side_effect = [0, 0, 30]
        gateway = mock.Mock()
        gateway.initiate.return_value = "ws_CO_3"
        gateway.poll_status.return_value = mock.Mock(status=STATUS_PENDING)

        flow = mpesa_payment_flow(PaymentLedger(Decimal("100")), gateway=gateway, clock=clock)
        outcome = flow.run(phone="0712345678", reference="R1")

        self.assertEqual(outcome.status, "timeout")
        clock.sleep.assert_called_once_with(5)


class MpesaCallbackTests(TestCase):
    def setUp(self):
        self.tx = MpesaTransaction.objects.create(
            checkout_request_id="ws_CO_9",
            phone_number="254712345678",
            amount=Decimal("1000"),
        )

    def test_result_code_mapping(self):
        for code, expected in ((0, "success"), (1032, "timeout"), (1, "failed"), (2001, "failed")):
            with self.subTest(code=code):
                MpesaTransaction.objects.filter(pk=self.tx.pk).update(status=MpesaTransaction.STATUS_PENDING)
                tx = apply_callback(callback("ws_CO_9", code, receipt="QK1" if code == 0 else None))
                self.assertEqual(tx.status, expected)
                self.assertEqual(tx.result_code, code)

    def test_success_stores_receipt(self):
        tx = apply_callback(callback("ws_CO_9", 0, receipt="QKJ3XYZ"))
        self.assertEqual(tx.mpesa_receipt_number, "QKJ3XYZ")

    def test_duplicate_callback_is_ignored(self):
        apply_callback(callback("ws_CO_9", 0, receipt="QKJ3XYZ"))
        tx = apply_callback(callback("ws_CO_9", 1, desc="late failure"))

        self.assertEqual(tx.status, MpesaTransaction.STATUS_SUCCESS)

    def test_unknown_checkout_returns_none(self):
        self.assertIsNone(apply_callback(callback("ws_CO_unknown", 0)))

    def test_malformed_payload(self):
        for payload in (None, {}, {"Body": {}}, {"Body": {"stkCallback": {"ResultCode": 0}}}):
            with self.subTest(payload=payload):
                with self.assertRaises(InvalidCallback):
                    apply_callback(payload)


class MpesaAPITests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(get_user_model().objects.create_user(username="cashier", password="pass"))

    def test_callback_endpoint_is_public(self):
        MpesaTransaction.objects.create(checkout_request_id="ws_CO_5", phone_number="254712345678")

        res = APIClient().post("/api/payments/mpesa/callback/", callback("ws_CO_5", 0, receipt="QK5"), format="json")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["ResultCode"], 0)
        self.assertEqual(MpesaTransaction.objects.get(checkout_request_id="ws_CO_5").status, "success")

    def test_callback_endpoint_rejects_malformed_payload(self):
        res = APIClient().post("/api/payments/mpesa/callback/", {"hello": "world"}, format="json")

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "INVALID_CALLBACK")

    def test_status_endpoint(self):
        MpesaTransaction.objects.create(
            checkout_request_id="ws_CO_6",
            phone_number="254712345678",
            status=MpesaTransaction.STATUS_FAILED,
            result_description="Insufficient balance",
        )

        res = self.client.get("/api/payments/mpesa/status/ws_CO_6/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["status"], STATUS_FAILED)
        self.assertEqual(res.data["message"], "Payment failed")

    def test_status_endpoint_unknown(self):
        res = self.client.get("/api/payments/mpesa/status/nope/")
        self.assertEqual(res.status_code, 404)

    @mock.patch("payments.views.mpesa.DarajaGateway")
    def test_stk_push_endpoint(self, gateway_cls):
        gateway_cls.return_value.initiate.return_value = "ws_CO_7"

        res = self.client.post(
            "/api/payments/mpesa/stk-push/",
            {"phone_number": "0712345678", "amount": "150.00", "reference": "R1"},
            format="json",
        )

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["checkout_request_id"], "ws_CO_7")

    @mock.patch("payments.views.mpesa.DarajaGateway")
    def test_stk_push_rejected_by_gateway(self, gateway_cls):
        gateway_cls.return_value.initiate.side_effect = InvalidPhoneNumber("Invalid phone number format.")

        res = self.client.post(
            "/api/payments/mpesa/stk-push/",
            {"phone_number": "123", "amount": "150.00", "reference": "R1"},
            format="json",
        )

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "INVALID_PHONE_NUMBER")
