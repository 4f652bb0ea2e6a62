"""
Cart types — lines, carts, snapshots.

Lines are denormalised when added: name, size, color and unit price are
copied from the catalog so a later catalog change never rewrites a cart
or an order built from it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from settle._types import ZERO, Money, ProductId, UserId, VariantKey, money

# ═══════════════════════════════════════════════════════════════════════════════
# Lines
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    """One (product, size) in a cart."""

    product_id: ProductId
    name: str
    size: str
    quantity: int
    unit_price: Money
    color: str | None = None
    image: str | None = None
    max_quantity: int | None = None

    @property
    def key(self) -> VariantKey:
        return VariantKey(self.product_id, self.size)

    @property
    def uid(self) -> str:
        return str(self.key)

    @property
    def line_total(self) -> Money:
        return money(self.unit_price * self.quantity)

    def with_quantity(self, quantity: int) -> CartLine:
        return replace(self, quantity=quantity)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart & Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Cart:
    """A user's cart. Owns its lines."""

    user_id: UserId
    lines: tuple[CartLine, ...] = ()

    def find(self, uid: str) -> CartLine | None:
        for line in self.lines:
            if line.uid == uid:
                return line
        return None

    @property
    def subtotal(self) -> Money:
        return money(sum((line.line_total for line in self.lines), ZERO))


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    """Immutable copy of a cart taken at checkout time."""

    user_id: UserId
    lines: tuple[CartLine, ...]
    taken_at: datetime

    @property
    def subtotal(self) -> Money:
        return money(sum((line.line_total for line in self.lines), ZERO))


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EmptyCart:
    """Checkout attempted with zero lines."""

    user_id: UserId

    @property
    def message(self) -> str:
        return "your cart is empty"


class CartErrorKind(Enum):
    QUANTITY_EXCEEDED = "quantity_exceeded"
    LINE_NOT_FOUND = "line_not_found"
    UNAVAILABLE = "unavailable"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class CartError:
    """Cart edit refused."""

    kind: CartErrorKind
    message: str


__all__ = (
    "CartLine",
    "Cart",
    "CartSnapshot",
    "EmptyCart",
    "CartErrorKind",
    "CartError",
)
