"""Tests for the pricing calculator."""

from decimal import Decimal

import pytest
from kungfu import Error

from conftest import CAP, TEE_M, make_line
from settle._types import ZERO, money
from settle.coupon import CouponKind, Discount
from settle.pricing import PricingErrorKind, ShippingRule, TaxRule, price

TEN_PERCENT = Discount("SAVE10", CouponKind.PERCENT, Decimal(10), money(2))


def holds_identity(breakdown) -> bool:
    return breakdown.total == (
        breakdown.total_before_discount
        - breakdown.total_saved
        + breakdown.shipping_price
        + breakdown.tax_price
    )


class TestPrice:
    def test_without_discount(self):
        breakdown = price([make_line(TEE_M, 2)]).unwrap()

        assert breakdown.total_before_discount == money(20)
        assert breakdown.total_saved == ZERO
        assert breakdown.shipping_price == ZERO
        assert breakdown.tax_price == ZERO
        assert breakdown.total == money(20)
        assert breakdown.coupon_applied is None

    def test_percent_discount(self):
        breakdown = price([make_line(TEE_M, 2)], TEN_PERCENT).unwrap()

        assert breakdown.total_saved == money(2)
        assert breakdown.total == money(18)
        assert breakdown.coupon_applied == "SAVE10"

    def test_fixed_discount_clamped(self):
        flat = Discount("FLAT50", CouponKind.FIXED, Decimal(50), money(50))

        breakdown = price([make_line(TEE_M, 1)], flat).unwrap()

        assert breakdown.total_saved == money(10)
        assert breakdown.total == ZERO

    def test_shipping_and_tax_on_discounted_subtotal(self):
        breakdown = price(
            [make_line(TEE_M, 2), make_line(CAP, 2, price="25")],
            TEN_PERCENT,
            ShippingRule(flat=money(40)),
            TaxRule(rate=Decimal("0.18")),
        ).unwrap()

        assert breakdown.total_before_discount == money(70)
        assert breakdown.total_saved == money(7)
        assert breakdown.shipping_price == money(40)
        assert breakdown.tax_price == money("11.34")
        assert breakdown.total == money("114.34")
        assert holds_identity(breakdown)

    def test_free_shipping_threshold(self):
        rule = ShippingRule(flat=money(40), free_over=money(500))

        assert price([make_line(TEE_M, 49, price="10")], shipping=rule).unwrap().shipping_price == money(40)
        assert price([make_line(TEE_M, 50, price="10")], shipping=rule).unwrap().shipping_price == ZERO

    @pytest.mark.parametrize("unit", ["0.01", "3.33", "19.99", "1234.56"])
    @pytest.mark.parametrize("rate", ["0", "0.05", "0.18"])
    def test_total_identity_and_non_negative(self, unit, rate):
        breakdown = price(
            [make_line(TEE_M, 3, price=unit)],
            TEN_PERCENT,
            ShippingRule(flat=money("4.99")),
            TaxRule(rate=Decimal(rate)),
        ).unwrap()

        assert holds_identity(breakdown)
        assert breakdown.total >= 0

    def test_negative_discount_rejected(self):
        negative = Discount("BAD", CouponKind.PERCENT, Decimal(-5), money(0))

        result = price([make_line(TEE_M, 1)], negative)

        assert isinstance(result, Error)
        assert result.error.kind == PricingErrorKind.NEGATIVE_DISCOUNT

    def test_percent_over_hundred_rejected(self):
        huge = Discount("HUGE", CouponKind.PERCENT, Decimal(150), money(0))
        result = price([make_line(TEE_M, 1)], huge)
        assert isinstance(result, Error)
        assert result.error.kind == PricingErrorKind.DISCOUNT_TOO_LARGE

    def test_invalid_line_rejected(self):
        result = price([make_line(TEE_M, 0)])
        assert isinstance(result, Error)
        assert result.error.kind == PricingErrorKind.INVALID_LINE

    def test_negative_rule_rejected(self):
        result = price([make_line(TEE_M, 1)], shipping=ShippingRule(flat=money(-1)))
        assert isinstance(result, Error)
        assert result.error.kind == PricingErrorKind.INVALID_RULE
