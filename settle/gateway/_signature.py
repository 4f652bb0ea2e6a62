"""
Razorpay signatures — hex HMAC-SHA256, compared in constant time.

webhook:   HMAC(webhook_secret, raw body), header X-Razorpay-Signature
checkout:  HMAC(key_secret, "{gateway_order_id}|{gateway_payment_id}")
"""

import hashlib
import hmac


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def _matches(secret: str, message: bytes, signature: str | None) -> bool:
    # an unset secret verifies nothing
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign(secret, message), signature.strip())


def verify_webhook_signature(body: bytes, signature: str | None, secret: str) -> bool:
    return _matches(secret, body, signature)


def payment_signature_message(gateway_order_id: str, gateway_payment_id: str) -> bytes:
    return f"{gateway_order_id}|{gateway_payment_id}".encode()


def verify_payment_signature(
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: str | None,
    key_secret: str,
) -> bool:
    message = payment_signature_message(gateway_order_id, gateway_payment_id)
    return _matches(key_secret, message, signature)


__all__ = (
    "sign",
    "verify_webhook_signature",
    "payment_signature_message",
    "verify_payment_signature",
)
