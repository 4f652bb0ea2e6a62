"""
Core types for settle.

Re-exports from kungfu + money and identity aliases shared by every component.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from kungfu import Result, Ok, Error, Option, Some, Nothing, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Currency amount in major units (rupees), always quantised to two places."""

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Decimal | int | str) -> Money:
    """Quantise any numeric input to two decimal places."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor(amount: Money) -> int:
    """Major units → gateway minor units (paise)."""
    return int((amount * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor(amount: int) -> Money:
    """Gateway minor units (paise) → major units."""
    return money(Decimal(amount) / 100)


# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════

type OrderId = str
type ProductId = str
type UserId = str
type ReservationId = str


@dataclass(frozen=True, slots=True)
class VariantKey:
    """A (product, size) pair with its own stock counter."""

    product_id: ProductId
    size: str

    def __str__(self) -> str:
        return f"{self.product_id}_{self.size}"


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "Option",
    "Some",
    "Nothing",
    "LazyCoroResult",
    # Money
    "Money",
    "CENT",
    "ZERO",
    "money",
    "to_minor",
    "from_minor",
    # Identity
    "OrderId",
    "ProductId",
    "UserId",
    "ReservationId",
    "VariantKey",
    # Clock
    "Clock",
    "utcnow",
    # Errors
    "StoreError",
)
