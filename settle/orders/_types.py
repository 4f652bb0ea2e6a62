"""
Order types — orders, lifecycle states, gateway records, errors.

Optional sub-records are explicit: an order has PaymentDetails only once
paid, RefundDetails only once refunded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from kungfu import Error, Ok, Result

from settle._types import Money, OrderId, ReservationId, UserId
from settle.cart import CartLine
from settle.pricing import PriceBreakdown

# ═══════════════════════════════════════════════════════════════════════════════
# Status
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    """
    pending → paid → delivered
    pending → cancelled
    paid | delivered → refunded
    """

    PENDING = "pending"
    PAID = "paid"
    DELIVERED = "delivered"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

    @property
    def is_paid(self) -> bool:
        return self in (OrderStatus.PAID, OrderStatus.DELIVERED)

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.REFUNDED, OrderStatus.CANCELLED)


# Free-form labels written by older storefront code.
LEGACY_STATUS_LABELS: dict[str, OrderStatus] = {
    "not processed": OrderStatus.PENDING,
    "processing": OrderStatus.PAID,
    "dispatched": OrderStatus.PAID,
    "in transit": OrderStatus.PAID,
    "completed": OrderStatus.DELIVERED,
}


@dataclass(frozen=True, slots=True)
class UnknownStatus:
    raw: str

    @property
    def message(self) -> str:
        return f"unknown order status {self.raw!r}"


def parse_status(raw: str) -> Result[OrderStatus, UnknownStatus]:
    """
    Boundary parser for stored or imported status labels.

    Example:
        parse_status("Paid")          # Ok(OrderStatus.PAID)
        parse_status("Processing")    # Ok(OrderStatus.PAID)
        parse_status("lost")          # Error(UnknownStatus("lost"))
    """
    label = raw.strip().lower()
    for status in OrderStatus:
        if status.value == label:
            return Ok(status)
    if label in LEGACY_STATUS_LABELS:
        return Ok(LEGACY_STATUS_LABELS[label])
    return Error(UnknownStatus(raw))


# ═══════════════════════════════════════════════════════════════════════════════
# Sub-records
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    first_name: str
    last_name: str
    phone_number: str
    address1: str
    city: str
    state: str
    zip_code: str
    country: str
    address2: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentDetails:
    """What the gateway reported about a captured payment."""

    method: str | None = None
    bank: str | None = None
    wallet: str | None = None
    vpa: str | None = None
    email: str | None = None
    acquirer_data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RefundDetails:
    id: str
    amount: Money
    status: str
    speed_processed: str | None = None
    processed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class PaymentFailure:
    """Last failed payment attempt on a pending order."""

    payment_id: str
    code: str | None
    description: str | None
    at: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Order:
    """
    An order placed from a cart snapshot.

    Lines and pricing never change after creation; only status, payment,
    delivery and refund fields move. `version` increases on every write.
    """

    id: OrderId
    user_id: UserId
    lines: tuple[CartLine, ...]
    shipping_address: ShippingAddress
    payment_method: str
    pricing: PriceBreakdown
    currency: str
    status: OrderStatus
    created_at: datetime
    reservation_ids: tuple[ReservationId, ...] = ()
    paid_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    payment_details: PaymentDetails | None = None
    refund_details: RefundDetails | None = None
    payment_failure: PaymentFailure | None = None
    version: int = 0

    @property
    def is_paid(self) -> bool:
        return self.status.is_paid

    @property
    def total(self) -> Money:
        return self.pricing.total

    @property
    def total_before_discount(self) -> Money:
        return self.pricing.total_before_discount

    @property
    def total_saved(self) -> Money:
        return self.pricing.total_saved

    @property
    def shipping_price(self) -> Money:
        return self.pricing.shipping_price

    @property
    def tax_price(self) -> Money:
        return self.pricing.tax_price

    @property
    def coupon_applied(self) -> str | None:
        return self.pricing.coupon_applied


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class InvalidTransition:
    """Operation not allowed from the order's current state."""

    order_id: OrderId
    from_status: OrderStatus
    attempted: str

    @property
    def message(self) -> str:
        return f"cannot {self.attempted} order {self.order_id} in state {self.from_status.value}"


@dataclass(frozen=True, slots=True)
class OrderNotFound:
    order_id: OrderId

    @property
    def message(self) -> str:
        return f"order {self.order_id} not found"


@dataclass(frozen=True, slots=True)
class GatewayMismatch:
    """Gateway identifiers disagree with what the order already holds."""

    order_id: OrderId
    reason: str

    @property
    def message(self) -> str:
        return f"gateway mismatch on {self.order_id}: {self.reason}"


@dataclass(frozen=True, slots=True)
class StaleOrder:
    """Optimistic version check failed."""

    order_id: OrderId
    expected_version: int

    @property
    def message(self) -> str:
        return f"order {self.order_id} changed since version {self.expected_version}"


__all__ = (
    "OrderStatus",
    "LEGACY_STATUS_LABELS",
    "UnknownStatus",
    "parse_status",
    "ShippingAddress",
    "PaymentDetails",
    "RefundDetails",
    "PaymentFailure",
    "Order",
    "InvalidTransition",
    "OrderNotFound",
    "GatewayMismatch",
    "StaleOrder",
)
