"""
Pricing types — shipping and tax rules, breakdowns, errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from settle._types import ZERO, Money, money

# ═══════════════════════════════════════════════════════════════════════════════
# Rules
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShippingRule:
    """
    Flat shipping fee, waived once the discounted subtotal reaches free_over.

    Example:
        ShippingRule(flat=money(50), free_over=money(500))
    """

    flat: Money = ZERO
    free_over: Money | None = None

    def fee_for(self, subtotal: Money) -> Money:
        if self.free_over is not None and subtotal >= self.free_over:
            return ZERO
        return money(self.flat)


@dataclass(frozen=True, slots=True)
class TaxRule:
    """Tax as a fraction of the discounted subtotal (0.18 = 18%)."""

    rate: Decimal = Decimal(0)

    def on(self, subtotal: Money) -> Money:
        return money(subtotal * self.rate)


# ═══════════════════════════════════════════════════════════════════════════════
# Breakdown
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    """
    total == total_before_discount - total_saved + shipping_price + tax_price
    """

    total_before_discount: Money
    total_saved: Money
    shipping_price: Money
    tax_price: Money
    total: Money
    coupon_applied: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class PricingErrorKind(Enum):
    NEGATIVE_DISCOUNT = "negative_discount"
    DISCOUNT_TOO_LARGE = "discount_too_large"
    INVALID_LINE = "invalid_line"
    INVALID_RULE = "invalid_rule"
    NEGATIVE_TOTAL = "negative_total"


@dataclass(frozen=True, slots=True)
class PricingError:
    kind: PricingErrorKind
    message: str


__all__ = (
    "ShippingRule",
    "TaxRule",
    "PriceBreakdown",
    "PricingErrorKind",
    "PricingError",
)
