from datetime import timedelta
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from business.models import BusinessSettings, Location
from business.services.config import (
    TAX_EXCLUSIVE,
    TAX_INCLUSIVE,
    CheckoutConfig,
    config_from_settings,
    due_date_for,
    get_checkout_config,
)


class CheckoutConfigTests(SimpleTestCase):
    def test_defaults(self):
        config = CheckoutConfig()
        self.assertEqual(config.tax_mode, TAX_EXCLUSIVE)
        self.assertFalse(config.tax_inclusive)
        self.assertEqual(config.credit_due_days, 30)

    def test_rejects_unknown_mode_and_negative_rate(self):
        with self.assertRaises(ValueError):
            CheckoutConfig(tax_mode="gross")
        with self.assertRaises(ValueError):
            CheckoutConfig(default_tax_rate=Decimal("-1"))

    def test_format_amount(self):
        self.assertEqual(CheckoutConfig(currency="KES").format_amount(Decimal("1234.5")), "KES 1,234.50")

    @override_settings(
        POS={"TAX_INCLUSIVE": True, "DEFAULT_TAX_RATE": "16", "CURRENCY": "UGX", "CREDIT_SALE_DUE_DAYS": 45}
    )
    def test_from_settings(self):
        config = config_from_settings()

        self.assertEqual(config.tax_mode, TAX_INCLUSIVE)
        self.assertEqual(config.default_tax_rate, Decimal("16"))
        self.assertEqual(config.currency, "UGX")
        self.assertEqual(config.credit_due_days, 45)

    @override_settings(POS={"DEFAULT_TAX_RATE": "sixteen"})
    def test_invalid_rate_falls_back_to_zero(self):
        with self.assertLogs("business.services.config", level="WARNING"):
            config = config_from_settings()
        self.assertEqual(config.default_tax_rate, Decimal("0"))

    def test_due_date_for_credit_terms(self):
        today = timezone.localdate()

        self.assertEqual(due_date_for(today, 30), today + timedelta(days=30))
        self.assertEqual(due_date_for(today, "7"), today + timedelta(days=7))


class BusinessSettingsResolutionTests(TestCase):
    @override_settings(POS={"DEFAULT_TAX_RATE": "8", "CURRENCY": "KES", "CREDIT_SALE_DUE_DAYS": 14})
    def test_settings_used_without_a_row(self):
        config = get_checkout_config()
        self.assertEqual(config.default_tax_rate, Decimal("8"))
        self.assertEqual(config.credit_due_days, 14)

    @override_settings(POS={"DEFAULT_TAX_RATE": "8", "CREDIT_SALE_DUE_DAYS": 14})
    def test_latest_row_overrides_settings(self):
        older = BusinessSettings.objects.create(tax_inclusive=False, default_tax_rate=Decimal("10.00"))
        BusinessSettings.objects.filter(pk=older.pk).update(updated_at=timezone.now() - timedelta(days=1))
        BusinessSettings.objects.create(tax_inclusive=True, default_tax_rate=Decimal("16.00"), currency_code="tzs")

        config = get_checkout_config()

        self.assertEqual(config.tax_mode, TAX_INCLUSIVE)
        self.assertEqual(config.default_tax_rate, Decimal("16.00"))
        self.assertEqual(config.currency, "TZS")
        self.assertEqual(config.credit_due_days, 14)


class LocationTests(TestCase):
    def test_code_unique_only_when_present(self):
        Location.objects.create(name="A")
        Location.objects.create(name="B", code="")
        Location.objects.create(name="C", code="")
        Location.objects.create(name="D", code="MAIN")

        with self.assertRaises(IntegrityError), transaction.atomic():
            Location.objects.create(name="E", code="MAIN")

    def test_str(self):
        self.assertEqual(str(Location(name="Main", code="M1")), "Main (M1)")
        self.assertEqual(str(Location(name="Main")), "Main")
