"""
Razorpay webhook parsing.

    {
      "event": "payment.captured",
      "payload": {
        "payment": {"entity": {"id": "pay_..", "order_id": "order_..",
                               "notes": {"order_id": "ord_.."}, ...}},
        "refund":  {"entity": {"id": "rfnd_..", "amount": 1800, ...}}
      }
    }

Amounts arrive in minor units. Razorpay sends `notes` as [] when empty.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from kungfu import Error, Ok, Result

from settle._types import from_minor
from settle.gateway._types import (
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    REFUND_PROCESSED,
    GatewayError,
    GatewayEvent,
)
from settle.orders import PaymentDetails, RefundDetails


def _entity(payload: dict[str, Any], name: str) -> dict[str, Any] | None:
    wrapper = payload.get(name)
    if not isinstance(wrapper, dict):
        return None
    entity = wrapper.get("entity")
    return entity if isinstance(entity, dict) else None


def _notes_order_id(*entities: dict[str, Any] | None) -> str | None:
    for entity in entities:
        if entity is None:
            continue
        notes = entity.get("notes")
        if isinstance(notes, dict):
            found = notes.get("order_id") or notes.get("orderId")
            if found:
                return str(found)
    return None


def _str(value: Any) -> str | None:
    return None if value is None else str(value)


def payment_details_from(entity: dict[str, Any]) -> PaymentDetails:
    acquirer = entity.get("acquirer_data")
    return PaymentDetails(
        method=_str(entity.get("method")),
        bank=_str(entity.get("bank")),
        wallet=_str(entity.get("wallet")),
        vpa=_str(entity.get("vpa")),
        email=_str(entity.get("email")),
        acquirer_data=(
            {str(k): str(v) for k, v in acquirer.items() if v is not None}
            if isinstance(acquirer, dict) else {}
        ),
    )


def refund_details_from(entity: dict[str, Any]) -> RefundDetails:
    stamp = entity.get("processed_at") or entity.get("created_at")
    return RefundDetails(
        id=str(entity["id"]),
        amount=from_minor(int(entity.get("amount", 0))),
        status=str(entity.get("status", "processed")),
        speed_processed=_str(entity.get("speed_processed")),
        processed_at=None if stamp is None else datetime.fromtimestamp(int(stamp), UTC),
    )


def parse_event(body: bytes) -> Result[GatewayEvent, GatewayError]:
    """Decode a webhook body already verified against its signature."""
    try:
        data = json.loads(body)
    except ValueError as e:
        return Error(GatewayError.malformed(f"body is not JSON: {e}"))

    if not isinstance(data, dict) or not isinstance(data.get("event"), str):
        return Error(GatewayError.malformed("missing event type"))

    event_type: str = data["event"]
    payload = data.get("payload")
    if not isinstance(payload, dict):
        payload = {}

    payment = _entity(payload, "payment")
    refund = _entity(payload, "refund")

    try:
        if event_type in (PAYMENT_CAPTURED, PAYMENT_FAILED):
            if payment is None:
                return Error(GatewayError.malformed(f"{event_type} without payment entity"))
            return Ok(GatewayEvent(
                event_type=event_type,
                gateway_order_id=_str(payment.get("order_id")),
                gateway_payment_id=_str(payment.get("id")),
                order_id=_notes_order_id(payment),
                payload=payload,
                payment_details=(
                    payment_details_from(payment) if event_type == PAYMENT_CAPTURED else None
                ),
                error_code=_str(payment.get("error_code")),
                error_description=_str(payment.get("error_description")),
            ))

        if event_type == REFUND_PROCESSED:
            if refund is None:
                return Error(GatewayError.malformed(f"{event_type} without refund entity"))
            return Ok(GatewayEvent(
                event_type=event_type,
                gateway_order_id=None if payment is None else _str(payment.get("order_id")),
                gateway_payment_id=_str(refund.get("payment_id")),
                order_id=_notes_order_id(refund, payment),
                payload=payload,
                refund_details=refund_details_from(refund),
            ))

        return Ok(GatewayEvent(
            event_type=event_type,
            gateway_order_id=None,
            gateway_payment_id=None,
            order_id=None,
            payload=payload,
        ))

    except (KeyError, TypeError, ValueError) as e:
        return Error(GatewayError.malformed(f"bad {event_type} payload: {e}"))


__all__ = (
    "payment_details_from",
    "refund_details_from",
    "parse_event",
)
