"""
HTTP surface — FastAPI routes over an Engine.

    from settle.api import create_app
    from settle.engine import memory_engine

    app = create_app(memory_engine(Settings.from_env()), sweep_interval=60)

Request models turn into domain values with `to_domain()`; response models
are built with `from_domain()`. Domain errors map to status codes through
ERROR_STATUS_CODES; anything unmapped is logged and answered with a generic
500 so internal detail never reaches the client.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from kungfu import Error, Ok
from pydantic import BaseModel, Field

from settle._types import money
from settle.cart import Cart, CartError, CartLine, EmptyCart
from settle.checkout import PlacedOrder
from settle.config import configure_logging
from settle.coupon import Coupon, CouponError
from settle.engine import Engine
from settle.gateway import GatewayError, WebhookAck
from settle.inventory import InsufficientStock
from settle.orders import (
    GatewayMismatch,
    InvalidTransition,
    Order,
    OrderNotFound,
    ShippingAddress,
    StaleOrder,
)

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "checkout failed, try again"

# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class CartLineIn(BaseModel):
    product_id: str
    name: str
    size: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    color: str | None = None
    image: str | None = None

    def to_domain(self) -> CartLine:
        return CartLine(
            product_id=self.product_id,
            name=self.name,
            size=self.size,
            quantity=self.quantity,
            unit_price=money(self.unit_price),
            color=self.color,
            image=self.image,
        )


class ShippingAddressIn(BaseModel):
    first_name: str
    last_name: str
    phone_number: str
    address1: str
    address2: str | None = None
    city: str
    state: str
    zip_code: str
    country: str

    def to_domain(self) -> ShippingAddress:
        return ShippingAddress(
            first_name=self.first_name,
            last_name=self.last_name,
            phone_number=self.phone_number,
            address1=self.address1,
            address2=self.address2,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            country=self.country,
        )


class CheckoutIn(BaseModel):
    user_id: str
    lines: list[CartLineIn]
    shipping_address: ShippingAddressIn
    payment_method: str = "razorpay"
    coupon_code: str | None = None

    def to_domain(self) -> Cart:
        return Cart(self.user_id, tuple(line.to_domain() for line in self.lines))


class VerifyPaymentIn(BaseModel):
    order_id: str
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class OrderLineOut(BaseModel):
    product_id: str
    name: str
    size: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    color: str | None = None
    image: str | None = None

    @classmethod
    def from_domain(cls, line: CartLine) -> OrderLineOut:
        return cls(
            product_id=line.product_id,
            name=line.name,
            size=line.size,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_total=line.line_total,
            color=line.color,
            image=line.image,
        )


class OrderOut(BaseModel):
    id: str
    user_id: str
    status: str
    is_paid: bool
    currency: str
    lines: list[OrderLineOut]
    total_before_discount: Decimal
    total_saved: Decimal
    shipping_price: Decimal
    tax_price: Decimal
    total: Decimal
    coupon_applied: str | None = None
    created_at: datetime
    paid_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            id=order.id,
            user_id=order.user_id,
            status=order.status.value,
            is_paid=order.is_paid,
            currency=order.currency,
            lines=[OrderLineOut.from_domain(line) for line in order.lines],
            total_before_discount=order.total_before_discount,
            total_saved=order.total_saved,
            shipping_price=order.shipping_price,
            tax_price=order.tax_price,
            total=order.total,
            coupon_applied=order.coupon_applied,
            created_at=order.created_at,
            paid_at=order.paid_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            refunded_at=order.refunded_at,
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=order.gateway_payment_id,
        )


class CheckoutOut(BaseModel):
    order: OrderOut
    gateway_order_id: str | None = None
    amount_minor: int | None = None
    coupon_dropped: str | None = None

    @classmethod
    def from_domain(cls, placed: PlacedOrder) -> CheckoutOut:
        dropped = placed.quote.dropped_coupon
        return cls(
            order=OrderOut.from_domain(placed.order),
            gateway_order_id=placed.gateway_order.id if placed.gateway_order else None,
            amount_minor=placed.gateway_order.amount_minor if placed.gateway_order else None,
            coupon_dropped=dropped.message if dropped else None,
        )


class CouponOut(BaseModel):
    code: str
    kind: str
    discount: Decimal
    start_date: date
    end_date: date
    minimum_order_value: Decimal | None = None

    @classmethod
    def from_domain(cls, coupon: Coupon) -> CouponOut:
        return cls(
            code=coupon.code,
            kind=coupon.kind.value,
            discount=coupon.discount,
            start_date=coupon.start_date,
            end_date=coupon.end_date,
            minimum_order_value=coupon.minimum_order_value,
        )


class WebhookAckOut(BaseModel):
    event: str
    order_id: str | None
    applied: bool
    note: str = ""

    @classmethod
    def from_domain(cls, ack: WebhookAck) -> WebhookAckOut:
        return cls(event=ack.event_type, order_id=ack.order_id, applied=ack.applied, note=ack.note)


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


ERROR_STATUS_CODES: dict[type, int] = {
    EmptyCart: 422,
    CartError: 422,
    CouponError: 422,
    InsufficientStock: 422,
    OrderNotFound: 404,
    InvalidTransition: 409,
    StaleOrder: 409,
    GatewayError: 400,
    GatewayMismatch: 400,
}


def error_response(err: Any) -> JSONResponse:
    """Render a domain error. Unmapped errors become a logged generic 500."""
    status_code = ERROR_STATUS_CODES.get(type(err))
    if status_code is None:
        logger.error("unhandled %s: %s", type(err).__name__, getattr(err, "message", err))
        return JSONResponse(
            status_code=500,
            content={"detail": GENERIC_FAILURE, "error_type": "InternalError"},
        )

    content: dict[str, Any] = {"detail": err.message, "error_type": type(err).__name__}
    if isinstance(err, InsufficientStock):
        content["shortages"] = [
            {
                "product_id": s.key.product_id,
                "size": s.key.size,
                "requested": s.requested,
                "available": s.available,
            }
            for s in err.shortages
        ]
    return JSONResponse(status_code=status_code, content=content)


# ═══════════════════════════════════════════════════════════════════════════════
# App
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(engine: Engine, *, sweep_interval: float | None = None) -> FastAPI:
    """
    Build the app. With sweep_interval set, expired pending orders are
    cancelled in the background for the app's lifetime. Logging is
    configured at `engine.settings.log_level`.
    """
    configure_logging(engine.settings.log_level)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if sweep_interval is None:
            yield
            return
        task = asyncio.create_task(engine.sweeper.run(sweep_interval))
        try:
            yield
        finally:
            engine.sweeper.stop()
            await task

    app = FastAPI(title="settle", version="0.1.0", lifespan=lifespan)

    @app.post("/checkout", response_model=CheckoutOut, status_code=201)
    async def checkout(req: CheckoutIn) -> Any:
        placed = await engine.checkout.place_order(
            req.to_domain(),
            req.shipping_address.to_domain(),
            req.payment_method,
            req.coupon_code,
        )
        match placed:
            case Ok(done):
                return CheckoutOut.from_domain(done)
            case Error(err):
                return error_response(err)

    @app.get("/orders/{order_id}", response_model=OrderOut)
    async def get_order(order_id: str) -> Any:
        match await engine.orders.get(order_id):
            case Ok(order):
                return OrderOut.from_domain(order)
            case Error(err):
                return error_response(err)

    @app.post("/orders/{order_id}/cancel", response_model=OrderOut)
    async def cancel_order(order_id: str) -> Any:
        match await engine.orders.cancel(order_id):
            case Ok(order):
                return OrderOut.from_domain(order)
            case Error(err):
                return error_response(err)

    @app.post("/orders/{order_id}/deliver", response_model=OrderOut)
    async def deliver_order(order_id: str) -> Any:
        match await engine.orders.mark_delivered(order_id):
            case Ok(order):
                return OrderOut.from_domain(order)
            case Error(err):
                return error_response(err)

    @app.post("/payments/verify", response_model=OrderOut)
    async def verify_payment(req: VerifyPaymentIn) -> Any:
        verified = await engine.gateway.verify_checkout_callback(
            req.order_id,
            req.razorpay_order_id,
            req.razorpay_payment_id,
            req.razorpay_signature,
        )
        match verified:
            case Ok(order):
                return OrderOut.from_domain(order)
            case Error(err):
                return error_response(err)

    @app.post("/webhooks/razorpay", response_model=WebhookAckOut)
    async def razorpay_webhook(
        request: Request,
        x_razorpay_signature: str | None = Header(default=None),
    ) -> Any:
        body = await request.body()
        match await engine.gateway.handle_webhook(body, x_razorpay_signature):
            case Ok(ack):
                return WebhookAckOut.from_domain(ack)
            case Error(err):
                return error_response(err)

    @app.get("/coupons", response_model=list[CouponOut])
    async def list_coupons() -> Any:
        match await engine.coupons.available(engine.clock()):
            case Ok(coupons):
                return [CouponOut.from_domain(c) for c in coupons]
            case Error(err):
                return error_response(err)

    return app


__all__ = (
    "GENERIC_FAILURE",
    "CartLineIn",
    "ShippingAddressIn",
    "CheckoutIn",
    "VerifyPaymentIn",
    "OrderLineOut",
    "OrderOut",
    "CheckoutOut",
    "CouponOut",
    "WebhookAckOut",
    "ERROR_STATUS_CODES",
    "error_response",
    "create_app",
)
