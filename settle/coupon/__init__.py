"""
Coupon — date-window validation and discount computation.

    from settle.coupon import CouponEvaluator, MemoryCouponBook

    coupons = CouponEvaluator(MemoryCouponBook((save10,)))
    discount = (await coupons.evaluate("save10", now, money(20))).unwrap()
"""

from settle.coupon._types import (
    normalize_code,
    CouponKind,
    Coupon,
    Discount,
    CouponErrorKind,
    CouponError,
)
from settle.coupon._book import (
    CouponBook,
    MemoryCouponBook,
    CouponTable,
    SQLAlchemyCouponBook,
)
from settle.coupon._evaluate import (
    discount_amount,
    evaluate_coupon,
    CouponEvaluator,
)

__all__ = (
    "normalize_code",
    "CouponKind",
    "Coupon",
    "Discount",
    "CouponErrorKind",
    "CouponError",
    "CouponBook",
    "MemoryCouponBook",
    "CouponTable",
    "SQLAlchemyCouponBook",
    "discount_amount",
    "evaluate_coupon",
    "CouponEvaluator",
)
