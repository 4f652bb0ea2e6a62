"""
Settings — runtime configuration.

Fluent builder pattern, like the pricing rules:

    settings = (
        Settings.from_env()
        .with_pending_ttl(minutes=15)
        .with_strict_coupons(False)
    )

Note: Immutable — each method returns new Settings.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from settle._types import Money, money
from settle.pricing import ShippingRule, TaxRule

# ═══════════════════════════════════════════════════════════════════════════════
# Defaults
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./settle.db"
DEFAULT_CURRENCY = "INR"
DEFAULT_PENDING_TTL = timedelta(minutes=30)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_money(name: str) -> Money | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return money(raw.strip())


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Engine configuration.

    strict_coupons: True rejects checkout when a supplied coupon is invalid,
    False drops the coupon and prices without a discount.
    """

    database_url: str = DEFAULT_DATABASE_URL
    currency: str = DEFAULT_CURRENCY
    pending_order_ttl: timedelta = DEFAULT_PENDING_TTL
    shipping: ShippingRule = ShippingRule()
    tax: TaxRule = TaxRule()
    strict_coupons: bool = True
    key_secret: str = ""
    webhook_secret: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Read SETTLE_* and RAZORPAY_* environment variables."""
        shipping = ShippingRule(
            flat=_env_money("SETTLE_SHIPPING_FLAT") or money(0),
            free_over=_env_money("SETTLE_FREE_SHIPPING_OVER"),
        )
        tax = TaxRule(rate=Decimal(os.getenv("SETTLE_TAX_RATE", "0")))
        ttl_minutes = float(os.getenv("SETTLE_PENDING_TTL_MINUTES", "30"))

        return cls(
            database_url=os.getenv("SETTLE_DATABASE_URL", DEFAULT_DATABASE_URL),
            currency=os.getenv("SETTLE_CURRENCY", DEFAULT_CURRENCY),
            pending_order_ttl=timedelta(minutes=ttl_minutes),
            shipping=shipping,
            tax=tax,
            strict_coupons=_env_bool("SETTLE_STRICT_COUPONS", True),
            key_secret=os.getenv("RAZORPAY_KEY_SECRET", ""),
            webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET", ""),
            log_level=os.getenv("SETTLE_LOG_LEVEL", "INFO"),
        )

    def with_pending_ttl(
        self,
        *,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> Settings:
        """
        Set how long a pending order may wait for payment.

        Example:
            .with_pending_ttl(minutes=15)
        """
        if delta is not None:
            ttl = delta
        elif minutes is not None:
            ttl = timedelta(minutes=minutes)
        else:
            ttl = DEFAULT_PENDING_TTL
        return Settings(
            database_url=self.database_url,
            currency=self.currency,
            pending_order_ttl=ttl,
            shipping=self.shipping,
            tax=self.tax,
            strict_coupons=self.strict_coupons,
            key_secret=self.key_secret,
            webhook_secret=self.webhook_secret,
            log_level=self.log_level,
        )

    def with_strict_coupons(self, strict: bool = True) -> Settings:
        """Whether an invalid coupon aborts checkout."""
        return Settings(
            database_url=self.database_url,
            currency=self.currency,
            pending_order_ttl=self.pending_order_ttl,
            shipping=self.shipping,
            tax=self.tax,
            strict_coupons=strict,
            key_secret=self.key_secret,
            webhook_secret=self.webhook_secret,
            log_level=self.log_level,
        )

    def with_rules(
        self,
        *,
        shipping: ShippingRule | None = None,
        tax: TaxRule | None = None,
    ) -> Settings:
        """Replace shipping and/or tax rules."""
        return Settings(
            database_url=self.database_url,
            currency=self.currency,
            pending_order_ttl=self.pending_order_ttl,
            shipping=shipping if shipping is not None else self.shipping,
            tax=tax if tax is not None else self.tax,
            strict_coupons=self.strict_coupons,
            key_secret=self.key_secret,
            webhook_secret=self.webhook_secret,
            log_level=self.log_level,
        )

    def with_secrets(self, *, key_secret: str, webhook_secret: str) -> Settings:
        """Set gateway signing secrets."""
        return Settings(
            database_url=self.database_url,
            currency=self.currency,
            pending_order_ttl=self.pending_order_ttl,
            shipping=self.shipping,
            tax=self.tax,
            strict_coupons=self.strict_coupons,
            key_secret=key_secret,
            webhook_secret=webhook_secret,
            log_level=self.log_level,
        )

    def with_log_level(self, level: str) -> Settings:
        """Level handed to `configure_logging` when the app starts."""
        return Settings(
            database_url=self.database_url,
            currency=self.currency,
            pending_order_ttl=self.pending_order_ttl,
            shipping=self.shipping,
            tax=self.tax,
            strict_coupons=self.strict_coupons,
            key_secret=self.key_secret,
            webhook_secret=self.webhook_secret,
            log_level=level,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Logging
# ═══════════════════════════════════════════════════════════════════════════════

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Configure the `settle` logger hierarchy."""
    logger = logging.getLogger("settle")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


__all__ = (
    "DEFAULT_DATABASE_URL",
    "DEFAULT_CURRENCY",
    "DEFAULT_PENDING_TTL",
    "Settings",
    "configure_logging",
)
