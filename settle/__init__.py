"""
settle — checkout and inventory reconciliation for storefront backends.

    from settle import inventory as I   # Stock ledger, reservations
    from settle import cart as C        # Cart edits, snapshots
    from settle import coupon as K      # Coupon evaluation
    from settle import pricing as P     # Order totals
    from settle import orders as O      # Order lifecycle
    from settle import gateway as G     # Razorpay-style webhooks
    from settle import checkout         # Quote graph, place_order saga
"""

from settle import inventory
from settle import cart
from settle import coupon
from settle import pricing
from settle import orders
from settle import gateway
from settle import checkout
from settle._types import (
    Money,
    money,
    OrderId,
    ProductId,
    UserId,
    ReservationId,
    VariantKey,
    StoreError,
)
from settle.config import Settings, configure_logging

__version__ = "0.1.0"

__all__ = (
    "inventory",
    "cart",
    "coupon",
    "pricing",
    "orders",
    "gateway",
    "checkout",
    "Money",
    "money",
    "OrderId",
    "ProductId",
    "UserId",
    "ReservationId",
    "VariantKey",
    "StoreError",
    "Settings",
    "configure_logging",
)
