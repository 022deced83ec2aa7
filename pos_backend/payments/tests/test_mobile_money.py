from decimal import Decimal

from django.test import SimpleTestCase

from payments.services.mobile_money import (
    OUTCOME_CANCELLED,
    OUTCOME_FAILED,
    OUTCOME_SUCCESS,
    OUTCOME_TIMEOUT,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SUCCESS,
    CancellationToken,
    GatewayStatus,
    MobileMoneyPaymentFlow,
)
from sales.services.exceptions import (
    CheckoutError,
    GatewayError,
    GatewayFailed,
    GatewayTimeout,
    UserCancelledPayment,
)
from sales.services.payment_ledger import PaymentLedger


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []
        self.on_sleep = None

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(self)


class FakeGateway:
    def __init__(self, statuses=None, initiate_error=None):
        self.statuses = list(statuses or [])
        self.initiate_error = initiate_error
        self.initiated = []
        self.polls = 0

    def initiate(self, *, amount, phone, reference, description=""):
        if self.initiate_error is not None:
            raise self.initiate_error
        self.initiated.append({"amount": amount, "phone": phone, "reference": reference})
        return "ws_CO_123"

    def poll_status(self, checkout_id):
        self.polls += 1
        if not self.statuses:
            return GatewayStatus(status=STATUS_PENDING)
        status = self.statuses.pop(0)
        if isinstance(status, Exception):
            raise status
        return status


class MobileMoneyPaymentFlowTests(SimpleTestCase):
    def setUp(self):
        self.ledger = PaymentLedger(Decimal("1000"))
        self.clock = FakeClock()

    def run_flow(self, gateway, **kwargs):
        flow = MobileMoneyPaymentFlow(self.ledger, gateway, clock=self.clock)
        return flow, flow.run(phone="0712345678", reference="R1", **kwargs)

    def test_timeout_after_full_budget(self):
        gateway = FakeGateway()

        _, outcome = self.run_flow(gateway)

        self.assertEqual(outcome.status, OUTCOME_TIMEOUT)
        self.assertEqual(self.clock.now, 60)
        self.assertEqual(gateway.polls, 20)
        self.assertTrue(all(s == 3 for s in self.clock.sleeps))
        self.assertEqual(self.ledger.payments, ())
        self.assertFalse(self.ledger.can_finalize())
        with self.assertRaises(GatewayTimeout):
            outcome.raise_for_status()

    def test_success_records_outstanding_balance(self):
        self.ledger.add_payment("cash", "400")
        gateway = FakeGateway(
            [
                GatewayStatus(status=STATUS_PENDING),
                GatewayStatus(status=STATUS_SUCCESS, transaction_id="tx-1", receipt="QKJ3XYZ"),
                GatewayStatus(status=STATUS_FAILED),
            ]
        )

        _, outcome = self.run_flow(gateway)

        self.assertTrue(outcome.succeeded)
        self.assertEqual(outcome.receipt, "QKJ3XYZ")
        self.assertEqual(gateway.initiated[0]["amount"], Decimal("600"))
        self.assertEqual(gateway.polls, 2)
        payment = self.ledger.payments[-1]
        self.assertEqual(payment.method, "mobile_money")
        self.assertEqual(payment.amount, Decimal("600"))
        self.assertEqual(payment.reference, "M-Pesa Payment - Transaction: QKJ3XYZ")
        self.assertEqual(self.ledger.remaining_balance, Decimal("0"))
        outcome.raise_for_status()

    def test_failed_status_leaves_ledger_untouched(self):
        gateway = FakeGateway([GatewayStatus(status=STATUS_FAILED, message="Insufficient funds")])

        _, outcome = self.run_flow(gateway)

        self.assertEqual(outcome.status, OUTCOME_FAILED)
        self.assertEqual(outcome.message, "Insufficient funds")
        self.assertEqual(self.ledger.payments, ())
        with self.assertRaises(GatewayFailed):
            outcome.raise_for_status()

    def test_initiation_rejected(self):
        gateway = FakeGateway(initiate_error=GatewayFailed("Invalid phone number"))

        _, outcome = self.run_flow(gateway)

        self.assertEqual(outcome.status, OUTCOME_FAILED)
        self.assertEqual(gateway.polls, 0)
        self.assertEqual(self.ledger.payments, ())

    def test_unreachable_gateway_at_initiation_ends_as_failed(self):
        gateway = FakeGateway(initiate_error=GatewayError("M-Pesa URLError: timed out"))

        _, outcome = self.run_flow(gateway)

        self.assertEqual(outcome.status, OUTCOME_FAILED)
        self.assertIn("timed out", outcome.message)
        self.assertEqual(gateway.polls, 0)
        self.assertEqual(self.ledger.payments, ())
        with self.assertRaises(GatewayFailed):
            outcome.raise_for_status()

    def test_transient_poll_errors_keep_polling(self):
        gateway = FakeGateway(
            [
                GatewayError("503 from gateway"),
                GatewayStatus(status=STATUS_SUCCESS, receipt="QK1"),
            ]
        )

        _, outcome = self.run_flow(gateway)

        self.assertEqual(outcome.status, OUTCOME_SUCCESS)
        self.assertEqual(gateway.polls, 2)

    def test_cancel_during_polling(self):
        gateway = FakeGateway()
        token = CancellationToken()

        def cancel_after_two_sleeps(clock):
            if len(clock.sleeps) == 2:
                token.cancel()

        self.clock.on_sleep = cancel_after_two_sleeps

        _, outcome = self.run_flow(gateway, cancel_token=token)

        self.assertEqual(outcome.status, OUTCOME_CANCELLED)
        self.assertEqual(gateway.polls, 1)
        self.assertEqual(self.ledger.payments, ())
        with self.assertRaises(UserCancelledPayment):
            outcome.raise_for_status()

    def test_flow_cancel_trips_running_token(self):
        gateway = FakeGateway()
        flow = MobileMoneyPaymentFlow(self.ledger, gateway, clock=self.clock)
        self.clock.on_sleep = lambda clock: flow.cancel()

        outcome = flow.run(phone="0712345678", reference="R1")

        self.assertEqual(outcome.status, OUTCOME_CANCELLED)
        self.assertEqual(gateway.polls, 0)

    def test_cancelled_before_start_never_initiates(self):
        gateway = FakeGateway()
        token = CancellationToken()
        token.cancel()

        _, outcome = self.run_flow(gateway, cancel_token=token)

        self.assertEqual(outcome.status, OUTCOME_CANCELLED)
        self.assertEqual(gateway.initiated, [])

    def test_nothing_to_pay(self):
        self.ledger.add_payment("cash", "1000")
        gateway = FakeGateway()

        _, outcome = self.run_flow(gateway)

        self.assertEqual(outcome.status, OUTCOME_FAILED)
        self.assertEqual(gateway.initiated, [])
        self.assertEqual(len(self.ledger.payments), 1)

    def test_direct_initiate_with_nothing_to_pay_raises(self):
        self.ledger.add_payment("cash", "1000")
        flow = MobileMoneyPaymentFlow(self.ledger, FakeGateway(), clock=self.clock)

        with self.assertRaises(CheckoutError):
            flow.initiate(phone="0712345678", reference="R1")

    def test_last_sleep_is_clamped_to_deadline(self):
        flow = MobileMoneyPaymentFlow(self.ledger, FakeGateway(), clock=self.clock, poll_interval=4, timeout=10)

        outcome = flow.run(phone="0712345678", reference="R1")

        self.assertEqual(outcome.status, OUTCOME_TIMEOUT)
        self.assertEqual(self.clock.sleeps, [4, 4, 2])

    def test_invalid_timing_rejected(self):
        with self.assertRaises(ValueError):
            MobileMoneyPaymentFlow(self.ledger, FakeGateway(), poll_interval=0)


class MobileMoneyConfirmTests(SimpleTestCase):
    def setUp(self):
        self.ledger = PaymentLedger(Decimal("1000"))
        self.ledger.add_payment("cash", "250")

    def confirm(self, status):
        flow = MobileMoneyPaymentFlow(self.ledger, FakeGateway([status]), clock=FakeClock())
        return flow.confirm("ws_CO_7")

    def test_success_records_outstanding_balance(self):
        outcome = self.confirm(GatewayStatus(status=STATUS_SUCCESS, receipt="QK7"))

        self.assertEqual(outcome.status, OUTCOME_SUCCESS)
        self.assertEqual(outcome.payment.amount, Decimal("750"))
        self.assertEqual(outcome.payment.reference, "M-Pesa Payment - Transaction: QK7")
        self.assertEqual(self.ledger.remaining_balance, Decimal("0"))

    def test_pending_is_not_recorded(self):
        outcome = self.confirm(GatewayStatus(status=STATUS_PENDING))

        self.assertEqual(outcome.status, OUTCOME_FAILED)
        self.assertIn("not been completed", outcome.message)
        self.assertEqual(len(self.ledger.payments), 1)

    def test_failed_is_not_recorded(self):
        outcome = self.confirm(GatewayStatus(status=STATUS_FAILED, message="Insufficient funds"))

        self.assertEqual(outcome.status, OUTCOME_FAILED)
        self.assertEqual(outcome.message, "Insufficient funds")
        self.assertEqual(len(self.ledger.payments), 1)

    def test_gateway_error_propagates(self):
        with self.assertRaises(GatewayError):
            self.confirm(GatewayError("not found"))
        self.assertEqual(len(self.ledger.payments), 1)
