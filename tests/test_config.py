"""Tests for Settings and logging setup."""

import logging
from datetime import timedelta
from decimal import Decimal

from settle._types import money
from settle.config import DEFAULT_DATABASE_URL, DEFAULT_PENDING_TTL, Settings, configure_logging
from settle.pricing import ShippingRule, TaxRule


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.currency == "INR"
        assert settings.pending_order_ttl == timedelta(minutes=30)
        assert settings.strict_coupons
        assert settings.key_secret == ""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SETTLE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        monkeypatch.setenv("SETTLE_SHIPPING_FLAT", "40")
        monkeypatch.setenv("SETTLE_FREE_SHIPPING_OVER", "500")
        monkeypatch.setenv("SETTLE_TAX_RATE", "0.18")
        monkeypatch.setenv("SETTLE_PENDING_TTL_MINUTES", "15")
        monkeypatch.setenv("SETTLE_STRICT_COUPONS", "no")
        monkeypatch.setenv("RAZORPAY_KEY_SECRET", "key")
        monkeypatch.setenv("RAZORPAY_WEBHOOK_SECRET", "whsec")
        monkeypatch.setenv("SETTLE_LOG_LEVEL", "DEBUG")

        settings = Settings.from_env()

        assert settings.database_url == "sqlite+aiosqlite:///:memory:"
        assert settings.shipping == ShippingRule(flat=money(40), free_over=money(500))
        assert settings.tax == TaxRule(rate=Decimal("0.18"))
        assert settings.pending_order_ttl == timedelta(minutes=15)
        assert not settings.strict_coupons
        assert (settings.key_secret, settings.webhook_secret) == ("key", "whsec")
        assert settings.log_level == "DEBUG"

    def test_from_env_without_variables(self, monkeypatch):
        for name in ("SETTLE_SHIPPING_FLAT", "SETTLE_FREE_SHIPPING_OVER", "SETTLE_STRICT_COUPONS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.shipping.free_over is None
        assert settings.strict_coupons

    def test_fluent_methods_return_new_settings(self):
        base = Settings()

        tuned = (
            base
            .with_pending_ttl(minutes=5)
            .with_strict_coupons(False)
            .with_rules(tax=TaxRule(rate=Decimal("0.05")))
            .with_secrets(key_secret="k", webhook_secret="w")
        )

        assert base == Settings()
        assert tuned.pending_order_ttl == timedelta(minutes=5)
        assert not tuned.strict_coupons
        assert tuned.tax.rate == Decimal("0.05")
        assert tuned.shipping == base.shipping
        assert tuned.key_secret == "k"

    def test_pending_ttl_from_delta(self):
        assert Settings().with_pending_ttl(delta=timedelta(hours=2)).pending_order_ttl == timedelta(hours=2)

    def test_zero_pending_ttl_is_kept(self):
        assert Settings().with_pending_ttl(minutes=0).pending_order_ttl == timedelta(0)
        assert Settings().with_pending_ttl(delta=timedelta(0)).pending_order_ttl == timedelta(0)

    def test_pending_ttl_without_arguments_is_default(self):
        tuned = Settings().with_pending_ttl(minutes=5)
        assert tuned.with_pending_ttl().pending_order_ttl == DEFAULT_PENDING_TTL

    def test_with_log_level(self):
        base = Settings()
        quiet = base.with_log_level("WARNING")

        assert base.log_level == "INFO"
        assert quiet.log_level == "WARNING"
        assert quiet.pending_order_ttl == base.pending_order_ttl


class TestConfigureLogging:
    def test_sets_level_once(self):
        logger = logging.getLogger("settle")
        before = list(logger.handlers)
        try:
            configure_logging("DEBUG")
            configure_logging("WARNING")

            assert logger.level == logging.WARNING
            assert len(logger.handlers) == max(len(before), 1)
        finally:
            logger.handlers = before
            logger.setLevel(logging.NOTSET)
