"""
Order state machine — pure transitions.

Each transition takes an Order and returns the next Order or
InvalidTransition. Nothing here touches storage or stock; the manager
persists the result and moves reservations.

    pending ──confirm_payment──► paid ──mark_delivered──► delivered
       │                          │                          │
       └──cancel──► cancelled     └────────refund────────────┴──► refunded
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from enum import Enum

from kungfu import Error, Ok, Result

from settle.orders._types import (
    InvalidTransition,
    Order,
    OrderStatus,
    PaymentDetails,
    PaymentFailure,
    RefundDetails,
)


class Transition(Enum):
    CONFIRM_PAYMENT = "confirm_payment"
    MARK_DELIVERED = "mark_delivered"
    REFUND = "refund"
    CANCEL = "cancel"
    ATTACH_GATEWAY_ORDER = "attach_gateway_order"
    RECORD_PAYMENT_FAILURE = "record_payment_failure"


ALLOWED_FROM: dict[Transition, frozenset[OrderStatus]] = {
    Transition.CONFIRM_PAYMENT: frozenset({OrderStatus.PENDING}),
    Transition.MARK_DELIVERED: frozenset({OrderStatus.PAID}),
    Transition.REFUND: frozenset({OrderStatus.PAID, OrderStatus.DELIVERED}),
    Transition.CANCEL: frozenset({OrderStatus.PENDING}),
    Transition.ATTACH_GATEWAY_ORDER: frozenset({OrderStatus.PENDING}),
    Transition.RECORD_PAYMENT_FAILURE: frozenset({OrderStatus.PENDING}),
}


def check(order: Order, transition: Transition) -> Result[Order, InvalidTransition]:
    if order.status in ALLOWED_FROM[transition]:
        return Ok(order)
    return Error(InvalidTransition(order.id, order.status, transition.value))


# ═══════════════════════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════════════════════


def confirm_payment(
    order: Order,
    *,
    gateway_order_id: str,
    gateway_payment_id: str,
    payment_details: PaymentDetails | None,
    now: datetime,
) -> Result[Order, InvalidTransition]:
    return check(order, Transition.CONFIRM_PAYMENT).map(lambda o: replace(
        o,
        status=OrderStatus.PAID,
        paid_at=now,
        gateway_order_id=gateway_order_id,
        gateway_payment_id=gateway_payment_id,
        payment_details=payment_details,
        payment_failure=None,
    ))


def mark_delivered(order: Order, *, now: datetime) -> Result[Order, InvalidTransition]:
    return check(order, Transition.MARK_DELIVERED).map(lambda o: replace(
        o,
        status=OrderStatus.DELIVERED,
        delivered_at=now,
    ))


def refund(
    order: Order,
    *,
    refund_details: RefundDetails,
    now: datetime,
) -> Result[Order, InvalidTransition]:
    return check(order, Transition.REFUND).map(lambda o: replace(
        o,
        status=OrderStatus.REFUNDED,
        refund_details=refund_details,
        refunded_at=now,
    ))


def cancel(order: Order, *, now: datetime) -> Result[Order, InvalidTransition]:
    return check(order, Transition.CANCEL).map(lambda o: replace(
        o,
        status=OrderStatus.CANCELLED,
        cancelled_at=now,
    ))


def attach_gateway_order(
    order: Order,
    *,
    gateway_order_id: str,
) -> Result[Order, InvalidTransition]:
    return check(order, Transition.ATTACH_GATEWAY_ORDER).map(
        lambda o: replace(o, gateway_order_id=gateway_order_id)
    )


def record_payment_failure(
    order: Order,
    *,
    failure: PaymentFailure,
) -> Result[Order, InvalidTransition]:
    """Keep the last failed attempt; the order stays pending."""
    return check(order, Transition.RECORD_PAYMENT_FAILURE).map(
        lambda o: replace(o, payment_failure=failure)
    )


__all__ = (
    "Transition",
    "ALLOWED_FROM",
    "check",
    "confirm_payment",
    "mark_delivered",
    "refund",
    "cancel",
    "attach_gateway_order",
    "record_payment_failure",
)
