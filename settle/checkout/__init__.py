"""
Checkout — cart snapshot ∥ coupon → pricing → order → gateway order.

    from settle.checkout import CheckoutService

    service = CheckoutService(manager, coupons, Settings.from_env())
    placed = (await service.place_order(cart, address, "razorpay", "SAVE10")).unwrap()
"""

from settle.checkout._graph import (
    QuoteError,
    CheckoutRequest,
    CheckoutDeps,
    Quote,
    CartSnapshotNode,
    CouponDiscountNode,
    CheckoutQuoteNode,
    run_node,
    quote,
)
from settle.checkout._service import (
    OpenPaymentError,
    CheckoutError,
    PlacedOrder,
    CheckoutService,
)

__all__ = (
    "QuoteError",
    "CheckoutRequest",
    "CheckoutDeps",
    "Quote",
    "CartSnapshotNode",
    "CouponDiscountNode",
    "CheckoutQuoteNode",
    "run_node",
    "quote",
    "OpenPaymentError",
    "CheckoutError",
    "PlacedOrder",
    "CheckoutService",
)
