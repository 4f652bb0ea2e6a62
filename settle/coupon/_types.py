"""
Coupon types — coupons, discounts, evaluation errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from settle._types import Money


def normalize_code(code: str) -> str:
    """Coupon codes are stored and matched upper-case."""
    return code.strip().upper()


# ═══════════════════════════════════════════════════════════════════════════════
# Coupon
# ═══════════════════════════════════════════════════════════════════════════════


class CouponKind(Enum):
    PERCENT = "percent"
    FIXED = "fixed"


@dataclass(frozen=True, slots=True)
class Coupon:
    """
    A discount code valid from start_date to end_date, both inclusive.

    discount: percentage points for PERCENT, currency amount for FIXED
    """

    code: str
    start_date: date
    end_date: date
    discount: Decimal
    kind: CouponKind = CouponKind.PERCENT
    minimum_order_value: Money | None = None

    def is_active(self, today: date) -> bool:
        return self.start_date <= today <= self.end_date


@dataclass(frozen=True, slots=True)
class Discount:
    """
    A validated coupon, ready for pricing.

    amount: what the coupon takes off the subtotal it was evaluated against
    """

    code: str
    kind: CouponKind
    value: Decimal
    amount: Money


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class CouponErrorKind(Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    NOT_YET_ACTIVE = "not_yet_active"
    BELOW_MINIMUM = "below_minimum"


_MESSAGES = {
    CouponErrorKind.NOT_FOUND: "coupon {code} does not exist",
    CouponErrorKind.EXPIRED: "coupon {code} has expired",
    CouponErrorKind.NOT_YET_ACTIVE: "coupon {code} is not valid yet",
    CouponErrorKind.BELOW_MINIMUM: "coupon {code} needs a larger order",
}


@dataclass(frozen=True, slots=True)
class CouponError:
    kind: CouponErrorKind
    code: str

    @property
    def message(self) -> str:
        return _MESSAGES[self.kind].format(code=self.code)


__all__ = (
    "normalize_code",
    "CouponKind",
    "Coupon",
    "Discount",
    "CouponErrorKind",
    "CouponError",
)
