"""
Coupon evaluation — a pure function of (coupon, now, subtotal).

Dates compare at day granularity in UTC, inclusive on both ends.
Coupons are never consumed: evaluating twice gives the same answer.
"""

from __future__ import annotations

import logging
from datetime import datetime

from kungfu import Error, Ok, Result

from settle._types import Money, StoreError, money
from settle.coupon._book import CouponBook
from settle.coupon._types import (
    Coupon,
    CouponError,
    CouponErrorKind,
    CouponKind,
    Discount,
    normalize_code,
)

logger = logging.getLogger(__name__)


def discount_amount(kind: CouponKind, value: Money, subtotal: Money) -> Money:
    """Amount taken off `subtotal`. Fixed amounts never exceed the subtotal."""
    match kind:
        case CouponKind.PERCENT:
            return money(subtotal * value / 100)
        case CouponKind.FIXED:
            return min(money(value), money(subtotal))


def evaluate_coupon(
    coupon: Coupon | None,
    code: str,
    now: datetime,
    subtotal: Money,
) -> Result[Discount, CouponError]:
    """
    Validate `coupon` against `now` and `subtotal`.

    Example:
        match evaluate_coupon(book_entry, "SAVE10", now, money(20)):
            case Ok(discount):
                discount.amount            # Decimal("2.00")
            case Error(CouponError(kind=CouponErrorKind.EXPIRED)):
                ...
    """
    code = normalize_code(code)
    if coupon is None:
        return Error(CouponError(CouponErrorKind.NOT_FOUND, code))

    today = now.date()
    if today > coupon.end_date:
        return Error(CouponError(CouponErrorKind.EXPIRED, code))
    if today < coupon.start_date:
        return Error(CouponError(CouponErrorKind.NOT_YET_ACTIVE, code))

    if coupon.minimum_order_value is not None and subtotal < coupon.minimum_order_value:
        return Error(CouponError(CouponErrorKind.BELOW_MINIMUM, code))

    return Ok(Discount(
        code=coupon.code,
        kind=coupon.kind,
        value=coupon.discount,
        amount=discount_amount(coupon.kind, coupon.discount, subtotal),
    ))


class CouponEvaluator:
    """Coupon lookups plus evaluation."""

    def __init__(self, book: CouponBook) -> None:
        self._book = book

    async def evaluate(
        self,
        code: str,
        now: datetime,
        subtotal: Money,
    ) -> Result[Discount, CouponError | StoreError]:
        match await self._book.find(normalize_code(code)):
            case Ok(coupon):
                result = evaluate_coupon(coupon, code, now, subtotal)
                if isinstance(result, Error):
                    logger.info("coupon rejected: %s", result.error.message)
                return result
            case Error(err):
                return Error(err)

    async def available(self, now: datetime) -> Result[tuple[Coupon, ...], StoreError]:
        """Coupons active today, highest discount first."""
        match await self._book.all():
            case Ok(coupons):
                today = now.date()
                active = [c for c in coupons if c.is_active(today)]
                active.sort(key=lambda c: c.discount, reverse=True)
                return Ok(tuple(active))
            case Error(err):
                return Error(err)


__all__ = (
    "discount_amount",
    "evaluate_coupon",
    "CouponEvaluator",
)
