"""
Gateway types — normalised webhook events and adapter errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from settle._types import OrderId
from settle.orders import PaymentDetails, RefundDetails

# ═══════════════════════════════════════════════════════════════════════════════
# Events
# ═══════════════════════════════════════════════════════════════════════════════

PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"
REFUND_PROCESSED = "refund.processed"


@dataclass(frozen=True, slots=True)
class GatewayEvent:
    """
    A verified webhook, reduced to what the order manager needs.

    order_id comes from the payment's notes; when absent the adapter falls
    back to looking the order up by gateway_order_id.
    """

    event_type: str
    gateway_order_id: str | None
    gateway_payment_id: str | None
    order_id: OrderId | None
    payload: dict[str, Any] = field(default_factory=dict)
    payment_details: PaymentDetails | None = None
    refund_details: RefundDetails | None = None
    error_code: str | None = None
    error_description: str | None = None


@dataclass(frozen=True, slots=True)
class GatewayOrder:
    """An order opened on the gateway for hosted checkout."""

    id: str
    amount_minor: int
    currency: str
    receipt: str


@dataclass(frozen=True, slots=True)
class WebhookAck:
    """What happened to a webhook. applied is False for no-ops and ignored events."""

    event_type: str
    order_id: OrderId | None
    applied: bool
    note: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class GatewayErrorKind(Enum):
    BAD_SIGNATURE = "bad_signature"
    MALFORMED = "malformed"
    UNKNOWN_ORDER = "unknown_order"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class GatewayError:
    kind: GatewayErrorKind
    message: str

    @classmethod
    def bad_signature(cls) -> GatewayError:
        return cls(GatewayErrorKind.BAD_SIGNATURE, "invalid signature")

    @classmethod
    def malformed(cls, message: str) -> GatewayError:
        return cls(GatewayErrorKind.MALFORMED, message)


__all__ = (
    "PAYMENT_CAPTURED",
    "PAYMENT_FAILED",
    "REFUND_PROCESSED",
    "GatewayEvent",
    "GatewayOrder",
    "WebhookAck",
    "GatewayErrorKind",
    "GatewayError",
)
