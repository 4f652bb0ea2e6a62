"""
CheckoutService — quote, place, and open payment for an order.

    service = CheckoutService(manager, coupons, settings, gateway=razorpay_client)

    match await service.place_order(cart, address, "razorpay", coupon_code="SAVE10"):
        case Ok(placed):
            placed.order.status          # OrderStatus.PENDING
            placed.gateway_order.id      # hand to hosted checkout
        case Error(InsufficientStock() as short):
            print(short.message)

Placing runs as a saga: if the gateway order cannot be opened, the new
order is cancelled and its stock released before the error is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result

from settle._types import Clock, StoreError, to_minor, utcnow
from settle.cart import Cart
from settle.checkout._graph import CheckoutDeps, CheckoutRequest, Quote, QuoteError, quote
from settle.config import Settings
from settle.coupon import CouponEvaluator
from settle.gateway import GatewayClient, GatewayError, GatewayErrorKind, GatewayOrder
from settle.inventory import InsufficientStock, LedgerError
from settle.orders import (
    GatewayMismatch,
    InvalidTransition,
    Order,
    OrderManager,
    OrderNotFound,
    ShippingAddress,
    StaleOrder,
)
from settle.saga import SagaStep, run_saga

logger = logging.getLogger(__name__)

type OpenPaymentError = (
    GatewayError | GatewayMismatch | InvalidTransition | OrderNotFound | StaleOrder | StoreError
)
type CheckoutError = QuoteError | InsufficientStock | LedgerError | OpenPaymentError


@dataclass(frozen=True, slots=True)
class PlacedOrder:
    order: Order
    quote: Quote
    gateway_order: GatewayOrder | None = None


class CheckoutService:
    def __init__(
        self,
        manager: OrderManager,
        coupons: CouponEvaluator,
        settings: Settings,
        *,
        gateway: GatewayClient | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._manager = manager
        self._gateway = gateway
        self._clock = clock
        self._deps = CheckoutDeps(
            coupons=coupons,
            shipping=settings.shipping,
            tax=settings.tax,
            strict_coupons=settings.strict_coupons,
        )

    async def quote(self, cart: Cart, coupon_code: str | None = None) -> Result[Quote, QuoteError]:
        """Snapshot, coupon and pricing without touching stock."""
        return await quote(CheckoutRequest(cart, coupon_code, self._clock()), self._deps)

    async def place_order(
        self,
        cart: Cart,
        address: ShippingAddress,
        payment_method: str,
        coupon_code: str | None = None,
    ) -> Result[PlacedOrder, CheckoutError]:
        quoted = await self.quote(cart, coupon_code)
        if isinstance(quoted, Error):
            return quoted
        q = quoted.value
        if q.dropped_coupon is not None:
            logger.info("checkout for %s continues without coupon: %s", cart.user_id, q.dropped_coupon.message)

        created: list[Order] = []

        async def create() -> Result[Order, CheckoutError]:
            result = await self._manager.create(
                q.snapshot, q.breakdown, address, payment_method, user_id=cart.user_id,
            )
            if isinstance(result, Ok):
                created.append(result.value)
            return result

        async def open_payment() -> Result[GatewayOrder | None, CheckoutError]:
            if self._gateway is None:
                return Ok(None)
            return await self.open_payment(created[0])

        placed = await run_saga([
            SagaStep(
                name="create order",
                action=LazyCoroResult(create),
                compensate=lambda order: self._manager.cancel(order.id),
            ),
            SagaStep(name="open payment", action=LazyCoroResult(open_payment)),
        ])

        match placed:
            case Ok(done):
                order = created[0]
                gateway_order = done.values[-1]
                if gateway_order is not None:
                    order = (await self._manager.get(order.id)).unwrap_or(order)
                return Ok(PlacedOrder(order, q, gateway_order))
            case Error(failed):
                return Error(failed.error)

    async def open_payment(self, order: Order) -> Result[GatewayOrder, OpenPaymentError]:
        """Open a gateway order for the order's total and link it."""
        if self._gateway is None:
            return Error(GatewayError(GatewayErrorKind.UNAVAILABLE, "no payment gateway configured"))
        gateway = self._gateway

        opened = await L.catching_async(
            lambda: gateway.create_order(
                to_minor(order.total),
                order.currency,
                order.id,
                {"order_id": order.id},
            ),
            on_error=lambda e: GatewayError(GatewayErrorKind.UNAVAILABLE, f"gateway order failed: {e}"),
        )
        if isinstance(opened, Error):
            logger.warning("order %s: %s", order.id, opened.error.message)
            return opened

        linked = await self._manager.attach_gateway_order(order.id, opened.value.id)
        if isinstance(linked, Error):
            return linked
        return Ok(opened.value)


__all__ = (
    "OpenPaymentError",
    "CheckoutError",
    "PlacedOrder",
    "CheckoutService",
)
