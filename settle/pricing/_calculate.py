from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from kungfu import Error, Ok, Result

from settle._types import ZERO, money
from settle.cart import CartLine
from settle.coupon import CouponKind, Discount, discount_amount
from settle.pricing._types import (
    PriceBreakdown,
    PricingError,
    PricingErrorKind,
    ShippingRule,
    TaxRule,
)


def _check_discount(discount: Discount) -> PricingError | None:
    if discount.value < 0:
        return PricingError(
            PricingErrorKind.NEGATIVE_DISCOUNT,
            f"discount {discount.code} is negative",
        )
    if discount.kind == CouponKind.PERCENT and discount.value > 100:
        return PricingError(
            PricingErrorKind.DISCOUNT_TOO_LARGE,
            f"discount {discount.code} exceeds 100%",
        )
    return None


def price(
    lines: Sequence[CartLine],
    discount: Discount | None = None,
    shipping: ShippingRule = ShippingRule(),
    tax: TaxRule = TaxRule(),
) -> Result[PriceBreakdown, PricingError]:
    """
    Derive order totals from snapshot lines.

    Shipping and tax are computed on the discounted subtotal. Every amount
    is quantised to two places with ROUND_HALF_UP.

    Example:
        breakdown = price(snap.lines, discount, ShippingRule(flat=money(40))).unwrap()
        breakdown.total   # before - saved + shipping + tax
    """
    for line in lines:
        if line.quantity < 1 or line.unit_price < 0:
            return Error(PricingError(
                PricingErrorKind.INVALID_LINE,
                f"line {line.uid} has quantity {line.quantity} at {line.unit_price}",
            ))

    if shipping.flat < 0 or tax.rate < 0:
        return Error(PricingError(PricingErrorKind.INVALID_RULE, "rules must be non-negative"))

    before = money(sum((line.line_total for line in lines), ZERO))

    saved = ZERO
    if discount is not None:
        if (problem := _check_discount(discount)) is not None:
            return Error(problem)
        saved = discount_amount(discount.kind, Decimal(discount.value), before)

    discounted = before - saved
    shipping_price = shipping.fee_for(discounted)
    tax_price = tax.on(discounted)
    total = money(discounted + shipping_price + tax_price)

    if total < 0:
        return Error(PricingError(PricingErrorKind.NEGATIVE_TOTAL, f"total {total} is negative"))

    return Ok(PriceBreakdown(
        total_before_discount=before,
        total_saved=saved,
        shipping_price=shipping_price,
        tax_price=tax_price,
        total=total,
        coupon_applied=discount.code if discount is not None else None,
    ))


__all__ = ("price",)
