"""
Gateway — Razorpay-style webhooks and checkout callbacks.

    from settle.gateway import PaymentGatewayAdapter

    adapter = PaymentGatewayAdapter(manager, webhook_secret=ws, key_secret=ks)
    ack = await adapter.handle_webhook(body, signature)
"""

from settle.gateway._types import (
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    REFUND_PROCESSED,
    GatewayEvent,
    GatewayOrder,
    WebhookAck,
    GatewayErrorKind,
    GatewayError,
)
from settle.gateway._signature import (
    sign,
    verify_webhook_signature,
    payment_signature_message,
    verify_payment_signature,
)
from settle.gateway._razorpay import (
    payment_details_from,
    refund_details_from,
    parse_event,
)
from settle.gateway._client import GatewayClient
from settle.gateway._adapter import AdapterError, PaymentGatewayAdapter

__all__ = (
    "PAYMENT_CAPTURED",
    "PAYMENT_FAILED",
    "REFUND_PROCESSED",
    "GatewayEvent",
    "GatewayOrder",
    "WebhookAck",
    "GatewayErrorKind",
    "GatewayError",
    "sign",
    "verify_webhook_signature",
    "payment_signature_message",
    "verify_payment_signature",
    "payment_details_from",
    "refund_details_from",
    "parse_event",
    "GatewayClient",
    "AdapterError",
    "PaymentGatewayAdapter",
)
