"""
Inventory types — variants, reservations, ledger errors.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from settle._types import Money, OrderId, ReservationId, VariantKey

# ═══════════════════════════════════════════════════════════════════════════════
# Variant
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Variant:
    """
    Stock counters for one (product, size).

    qty: units available to sell, never negative
    sold: lifetime units sold, shrinks only when a reservation is released
    """

    key: VariantKey
    qty: int
    sold: int
    price: Money


# ═══════════════════════════════════════════════════════════════════════════════
# Reservation
# ═══════════════════════════════════════════════════════════════════════════════


class ReservationState(Enum):
    """
    Reservation lifecycle.

    HELD → COMMITTED → RELEASED
    HELD → RELEASED
    """

    HELD = "held"
    COMMITTED = "committed"
    RELEASED = "released"


@dataclass(frozen=True, slots=True)
class StockReservation:
    """Units of one variant taken on behalf of one order."""

    id: ReservationId
    order_id: OrderId
    key: VariantKey
    quantity: int
    state: ReservationState
    created_at: datetime

    @property
    def is_released(self) -> bool:
        return self.state == ReservationState.RELEASED

    def with_state(self, state: ReservationState) -> StockReservation:
        return replace(self, state=state)


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Shortage:
    """One line that cannot be served."""

    key: VariantKey
    requested: int
    available: int

    def __str__(self) -> str:
        return (
            f"{self.key.product_id} (size {self.key.size}): "
            f"requested {self.requested}, only {self.available} left"
        )


@dataclass(frozen=True, slots=True)
class InsufficientStock:
    """Not enough units for one or more lines. Never retried."""

    shortages: tuple[Shortage, ...]

    @property
    def message(self) -> str:
        return "insufficient stock: " + "; ".join(str(s) for s in self.shortages)


class LedgerErrorKind(Enum):
    STORE = "store"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class LedgerError:
    """Ledger operation failed for a reason other than stock level."""

    kind: LedgerErrorKind
    message: str
    cause: Exception | None = None

    @classmethod
    def not_found(cls, what: str) -> LedgerError:
        return cls(LedgerErrorKind.NOT_FOUND, f"{what} not found")

    @classmethod
    def store(cls, message: str, cause: Exception | None = None) -> LedgerError:
        return cls(LedgerErrorKind.STORE, message, cause)


__all__ = (
    "Variant",
    "ReservationState",
    "StockReservation",
    "Shortage",
    "InsufficientStock",
    "LedgerErrorKind",
    "LedgerError",
)
