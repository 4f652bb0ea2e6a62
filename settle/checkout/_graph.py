"""
Checkout quote graph — nodnod nodes with auto-parallelization.

    CheckoutRequest ──► CartSnapshotNode ──┐
           │                               ├──► CheckoutQuoteNode
           └─────────► CouponDiscountNode ─┘
    CheckoutDeps ──────────────┘                      ▲
           └──────────────────────────────────────────┘

Snapshot and coupon evaluation have no dependency on each other and run
concurrently. Nodes carry Result values; nothing here raises for
business errors.

Note: no `from __future__ import annotations` here. nodnod reads the
`__compose__` annotations at class creation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast
from collections.abc import Callable, Coroutine

from kungfu import Error, Ok, Result
from nodnod import EventLoopAgent, Node, Scope, Value, scalar_node

from settle._types import StoreError
from settle.cart import Cart, CartSnapshot, EmptyCart, snapshot
from settle.coupon import CouponError, CouponEvaluator, Discount
from settle.pricing import PriceBreakdown, PricingError, ShippingRule, TaxRule, price

type QuoteError = EmptyCart | CouponError | PricingError | StoreError

# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    cart: Cart
    coupon_code: str | None
    now: datetime


@dataclass(frozen=True, slots=True)
class CheckoutDeps:
    coupons: CouponEvaluator
    shipping: ShippingRule
    tax: TaxRule
    strict_coupons: bool = True


@dataclass(frozen=True, slots=True)
class Quote:
    """
    Everything needed to place an order.

    dropped_coupon is set when a coupon was supplied but could not be
    applied and coupons are not strict.
    """

    snapshot: CartSnapshot
    discount: Discount | None
    breakdown: PriceBreakdown
    dropped_coupon: CouponError | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@scalar_node
class CartSnapshotNode:
    """Freeze the cart."""

    def __init__(self, result: Result[CartSnapshot, EmptyCart]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, request: CheckoutRequest) -> "CartSnapshotNode":
        return cls(snapshot(request.cart, request.now))


@scalar_node
class CouponDiscountNode:
    """Evaluate the supplied coupon against the cart subtotal. Ok(None) without one."""

    def __init__(self, result: Result[Discount | None, CouponError | StoreError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(
        cls,
        request: CheckoutRequest,
        deps: CheckoutDeps,
    ) -> "CouponDiscountNode":
        code = (request.coupon_code or "").strip()
        if not code:
            return cls(Ok(None))
        evaluated = await deps.coupons.evaluate(code, request.now, request.cart.subtotal)
        return cls(evaluated)


@scalar_node
class CheckoutQuoteNode:
    """Price the snapshot with whatever discount survived."""

    def __init__(self, result: Result[Quote, QuoteError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(
        cls,
        snap: CartSnapshotNode,
        coupon: CouponDiscountNode,
        deps: CheckoutDeps,
    ) -> "CheckoutQuoteNode":
        if isinstance(snap.result, Error):
            return cls(Error(snap.result.error))
        taken = snap.result.value

        discount: Discount | None = None
        dropped: CouponError | None = None
        match coupon.result:
            case Ok(found):
                discount = found
            case Error(CouponError() as rejected) if not deps.strict_coupons:
                dropped = rejected
            case Error(err):
                return cls(Error(err))

        priced = price(taken.lines, discount, deps.shipping, deps.tax)
        return cls(priced.map(lambda breakdown: Quote(taken, discount, breakdown, dropped)))


# ═══════════════════════════════════════════════════════════════════════════════
# Runner
# ═══════════════════════════════════════════════════════════════════════════════


async def run_node[T](target: type[T], *injections: tuple[type[Any], Any]) -> T:
    """
    Build an agent for `target`, inject values by type, return the node.

    Example:
        node = await run_node(
            CheckoutQuoteNode,
            (CheckoutRequest, request),
            (CheckoutDeps, deps),
        )
    """
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})

    async with Scope(detail="checkout") as scope:
        for typ, value in injections:
            scope.push(Value(typ, value))

        run_method = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(agent, "run"),
        )
        await run_method(scope, {})

        found = scope.get(target)
        if found is None:
            raise KeyError(f"{target.__name__} not found in scope")
        return cast(T, found.value)


async def quote(request: CheckoutRequest, deps: CheckoutDeps) -> Result[Quote, QuoteError]:
    node = await run_node(
        CheckoutQuoteNode,
        (CheckoutRequest, request),
        (CheckoutDeps, deps),
    )
    return node.result


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
)
