"""
PaymentGatewayAdapter — turns signed gateway traffic into order commands.

The adapter is the only caller of `confirm_payment` and `refund` from the
outside world. It verifies signatures, normalises provider payloads, and
resolves which order an event belongs to.

    adapter = PaymentGatewayAdapter(manager, webhook_secret=..., key_secret=...)

    # POST /webhooks/razorpay
    result = await adapter.handle_webhook(raw_body, request.headers.get("X-Razorpay-Signature"))

    # browser callback after hosted checkout
    result = await adapter.verify_checkout_callback(
        order_id, razorpay_order_id, razorpay_payment_id, razorpay_signature,
    )
"""

from __future__ import annotations

import logging

from kungfu import Error, Ok, Result

from settle._types import OrderId, StoreError
from settle.gateway._razorpay import parse_event
from settle.gateway._signature import verify_payment_signature, verify_webhook_signature
from settle.gateway._types import (
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    REFUND_PROCESSED,
    GatewayError,
    GatewayEvent,
    WebhookAck,
)
from settle.orders import (
    GatewayMismatch,
    InvalidTransition,
    Order,
    OrderManager,
    OrderNotFound,
    PaymentDetails,
    StaleOrder,
)

logger = logging.getLogger(__name__)

type AdapterError = (
    GatewayError | GatewayMismatch | InvalidTransition | OrderNotFound | StaleOrder | StoreError
)


class PaymentGatewayAdapter:
    def __init__(
        self,
        manager: OrderManager,
        *,
        webhook_secret: str,
        key_secret: str,
    ) -> None:
        self._manager = manager
        self._webhook_secret = webhook_secret
        self._key_secret = key_secret

    # ═══════════════════════════════════════════════════════════════════════════
    # Webhooks
    # ═══════════════════════════════════════════════════════════════════════════

    async def handle_webhook(
        self,
        body: bytes,
        signature: str | None,
    ) -> Result[WebhookAck, AdapterError]:
        """
        Verify, parse and apply one webhook delivery.

        Deliveries are retried by the gateway, so every path here is safe to
        repeat: duplicate captures and refunds are no-ops in the manager.
        """
        if not verify_webhook_signature(body, signature, self._webhook_secret):
            logger.warning("webhook rejected: bad signature")
            return Error(GatewayError.bad_signature())

        parsed = parse_event(body)
        if isinstance(parsed, Error):
            logger.warning("webhook rejected: %s", parsed.error.message)
            return parsed
        event = parsed.value

        if event.event_type not in (PAYMENT_CAPTURED, PAYMENT_FAILED, REFUND_PROCESSED):
            logger.info("webhook %s ignored", event.event_type)
            return Ok(WebhookAck(event.event_type, None, applied=False, note="event ignored"))

        resolved = await self._resolve_order(event)
        if isinstance(resolved, Error):
            return resolved
        order_id = resolved.value
        if order_id is None:
            logger.warning("webhook %s carries no order reference", event.event_type)
            return Ok(WebhookAck(event.event_type, None, applied=False, note="no order reference"))

        match event.event_type:
            case "payment.captured":
                return await self._captured(event, order_id)
            case "payment.failed":
                return await self._failed(event, order_id)
            case _:
                return await self._refunded(event, order_id)

    async def _resolve_order(self, event: GatewayEvent) -> Result[OrderId | None, StoreError]:
        if event.order_id is not None:
            return Ok(event.order_id)
        if event.gateway_order_id is None:
            return Ok(None)

        match await self._manager.find_by_gateway_order(event.gateway_order_id):
            case Ok(order):
                return Ok(order.id)
            case Error(OrderNotFound()):
                return Ok(None)
            case Error(err):
                return Error(err)

    async def _captured(self, event: GatewayEvent, order_id: OrderId) -> Result[WebhookAck, AdapterError]:
        if event.gateway_order_id is None or event.gateway_payment_id is None:
            return Error(GatewayError.malformed("payment.captured without order or payment id"))

        confirmed = await self._manager.confirm_payment(
            order_id,
            event.gateway_order_id,
            event.gateway_payment_id,
            event.payment_details,
        )
        match confirmed:
            case Ok(_):
                return Ok(WebhookAck(event.event_type, order_id, applied=True))
            case Error(InvalidTransition() as invalid):
                # captured after the order was cancelled: money needs a manual refund
                logger.error(
                    "payment %s captured for %s order %s",
                    event.gateway_payment_id, invalid.from_status.value, order_id,
                )
                return Error(invalid)
            case Error(err):
                return Error(err)

    async def _failed(self, event: GatewayEvent, order_id: OrderId) -> Result[WebhookAck, AdapterError]:
        recorded = await self._manager.record_payment_failure(
            order_id,
            event.gateway_payment_id or "",
            event.error_code,
            event.error_description,
        )
        match recorded:
            case Ok(_):
                return Ok(WebhookAck(event.event_type, order_id, applied=True))
            case Error(InvalidTransition()):
                # a later attempt already succeeded
                return Ok(WebhookAck(event.event_type, order_id, applied=False, note="order not pending"))
            case Error(err):
                return Error(err)

    async def _refunded(self, event: GatewayEvent, order_id: OrderId) -> Result[WebhookAck, AdapterError]:
        if event.refund_details is None:
            return Error(GatewayError.malformed("refund.processed without refund"))

        refunded = await self._manager.refund(
            order_id,
            event.refund_details,
            gateway_payment_id=event.gateway_payment_id,
            gateway_order_id=event.gateway_order_id,
        )
        if isinstance(refunded, Error):
            return refunded
        return Ok(WebhookAck(event.event_type, order_id, applied=True))

    # ═══════════════════════════════════════════════════════════════════════════
    # Checkout callback
    # ═══════════════════════════════════════════════════════════════════════════

    async def verify_checkout_callback(
        self,
        order_id: OrderId,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str | None,
        payment_details: PaymentDetails | None = None,
    ) -> Result[Order, AdapterError]:
        """Confirm payment from the signed hosted-checkout callback."""
        if not verify_payment_signature(gateway_order_id, gateway_payment_id, signature, self._key_secret):
            logger.warning("checkout callback for %s rejected: bad signature", order_id)
            return Error(GatewayError.bad_signature())

        return await self._manager.confirm_payment(
            order_id,
            gateway_order_id,
            gateway_payment_id,
            payment_details,
        )


__all__ = (
    "AdapterError",
    "PaymentGatewayAdapter",
)
