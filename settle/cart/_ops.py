"""
Cart operations — pure functions over immutable carts.
"""

from __future__ import annotations

from datetime import datetime

from kungfu import Error, Ok, Result

from settle.cart._types import (
    Cart,
    CartError,
    CartErrorKind,
    CartLine,
    CartSnapshot,
    EmptyCart,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


def snapshot(cart: Cart, now: datetime) -> Result[CartSnapshot, EmptyCart]:
    """
    Copy the cart's lines verbatim. No catalog lookup.

    Example:
        match snapshot(cart, utcnow()):
            case Ok(snap):
                ...
            case Error(EmptyCart()):
                ...
    """
    if not cart.lines:
        return Error(EmptyCart(cart.user_id))
    return Ok(CartSnapshot(user_id=cart.user_id, lines=tuple(cart.lines), taken_at=now))


# ═══════════════════════════════════════════════════════════════════════════════
# Editing
# ═══════════════════════════════════════════════════════════════════════════════


def _exceeded(line: CartLine) -> CartError:
    return CartError(
        CartErrorKind.QUANTITY_EXCEEDED,
        f"cannot exceed available quantity ({line.max_quantity}) for {line.name}",
    )


def add_line(cart: Cart, line: CartLine) -> Result[Cart, CartError]:
    """Add a line, merging into an existing line with the same uid."""
    if line.quantity < 1:
        return Error(CartError(CartErrorKind.INVALID, "quantity must be at least 1"))

    existing = cart.find(line.uid)
    if existing is None:
        if line.max_quantity is not None and line.quantity > line.max_quantity:
            return Error(_exceeded(line))
        return Ok(Cart(cart.user_id, cart.lines + (line,)))

    merged = existing.quantity + line.quantity
    if existing.max_quantity is not None and merged > existing.max_quantity:
        return Error(_exceeded(existing))

    return Ok(Cart(
        cart.user_id,
        tuple(l.with_quantity(merged) if l.uid == line.uid else l for l in cart.lines),
    ))


def remove_line(cart: Cart, uid: str) -> Result[Cart, CartError]:
    if cart.find(uid) is None:
        return Error(CartError(CartErrorKind.LINE_NOT_FOUND, f"no line {uid} in cart"))
    return Ok(Cart(cart.user_id, tuple(l for l in cart.lines if l.uid != uid)))


def update_quantity(cart: Cart, uid: str, quantity: int) -> Result[Cart, CartError]:
    """Set a line's quantity. Below 1 removes the line."""
    line = cart.find(uid)
    if line is None:
        return Error(CartError(CartErrorKind.LINE_NOT_FOUND, f"no line {uid} in cart"))

    if line.max_quantity is not None and quantity > line.max_quantity:
        return Error(_exceeded(line))

    if quantity < 1:
        return remove_line(cart, uid)

    return Ok(Cart(
        cart.user_id,
        tuple(l.with_quantity(quantity) if l.uid == uid else l for l in cart.lines),
    ))


def clear(cart: Cart) -> Cart:
    return Cart(cart.user_id)


__all__ = (
    "snapshot",
    "add_line",
    "remove_line",
    "update_quantity",
    "clear",
)
