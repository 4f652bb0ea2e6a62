"""
Pricing — order totals from lines, discount, shipping and tax.

    from settle.pricing import price, ShippingRule, TaxRule

    breakdown = price(
        snap.lines,
        discount,
        ShippingRule(flat=money(40), free_over=money(999)),
        TaxRule(rate=Decimal("0.05")),
    ).unwrap()
"""

from settle.pricing._types import (
    ShippingRule,
    TaxRule,
    PriceBreakdown,
    PricingErrorKind,
    PricingError,
)
from settle.pricing._calculate import price

__all__ = (
    "ShippingRule",
    "TaxRule",
    "PriceBreakdown",
    "PricingErrorKind",
    "PricingError",
    "price",
)
