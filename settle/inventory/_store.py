"""
Ledger store — storage protocol for stock counters and reservations.

All methods return Result for explicit error handling.
Implementations must serialise writes per variant: two concurrent `take`
calls for the last unit can never both succeed.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from kungfu import Error, Ok, Result

from settle._types import OrderId, ReservationId, VariantKey
from settle.inventory._types import (
    InsufficientStock,
    LedgerError,
    LedgerErrorKind,
    ReservationState,
    Shortage,
    StockReservation,
    Variant,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class LedgerStore(Protocol):
    """
    Stock counter storage.

    Note: `take` and `give_back` are the only operations that move `qty`
    and `sold` on behalf of orders; `restock` moves `qty` for admins.
    """

    async def get_variant(self, key: VariantKey) -> Result[Variant | None, LedgerError]:
        """Current counters. Returns Ok(None) if unknown."""
        ...

    async def put_variant(self, variant: Variant) -> Result[None, LedgerError]:
        """Insert or overwrite a variant."""
        ...

    async def take(
        self,
        reservation: StockReservation,
    ) -> Result[StockReservation, InsufficientStock | LedgerError]:
        """
        Atomically check qty >= reservation.quantity, decrement qty,
        increment sold and record the reservation as HELD.
        """
        ...

    async def give_back(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation, LedgerError]:
        """
        Reverse a reservation and mark it RELEASED.

        Releasing a RELEASED reservation returns it unchanged.
        """
        ...

    async def mark_committed(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation, LedgerError]:
        """HELD → COMMITTED. Counters do not move."""
        ...

    async def get_reservation(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation | None, LedgerError]:
        ...

    async def reservations_for(
        self,
        order_id: OrderId,
    ) -> Result[tuple[StockReservation, ...], LedgerError]:
        ...

    async def restock(self, key: VariantKey, quantity: int) -> Result[Variant, LedgerError]:
        """Add units to qty."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryLedgerStore:
    """
    In-memory ledger for testing and single-process deployments.

    Note: One asyncio.Lock per variant.
    """

    def __init__(self) -> None:
        self._variants: dict[VariantKey, Variant] = {}
        self._reservations: dict[ReservationId, StockReservation] = {}
        self._locks: dict[VariantKey, asyncio.Lock] = {}

    def _lock(self, key: VariantKey) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    async def get_variant(self, key: VariantKey) -> Result[Variant | None, LedgerError]:
        return Ok(self._variants.get(key))

    async def put_variant(self, variant: Variant) -> Result[None, LedgerError]:
        async with self._lock(variant.key):
            self._variants[variant.key] = variant
        return Ok(None)

    async def take(
        self,
        reservation: StockReservation,
    ) -> Result[StockReservation, InsufficientStock | LedgerError]:
        key = reservation.key
        async with self._lock(key):
            variant = self._variants.get(key)
            if variant is None:
                return Error(LedgerError.not_found(f"variant {key}"))

            if variant.qty < reservation.quantity:
                return Error(InsufficientStock((
                    Shortage(key, reservation.quantity, variant.qty),
                )))

            self._variants[key] = Variant(
                key=key,
                qty=variant.qty - reservation.quantity,
                sold=variant.sold + reservation.quantity,
                price=variant.price,
            )
            held = reservation.with_state(ReservationState.HELD)
            self._reservations[held.id] = held
            return Ok(held)

    async def give_back(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation, LedgerError]:
        found = self._reservations.get(reservation_id)
        if found is None:
            return Error(LedgerError.not_found(f"reservation {reservation_id}"))

        async with self._lock(found.key):
            current = self._reservations[reservation_id]
            if current.is_released:
                return Ok(current)

            variant = self._variants[current.key]
            self._variants[current.key] = Variant(
                key=variant.key,
                qty=variant.qty + current.quantity,
                sold=variant.sold - current.quantity,
                price=variant.price,
            )
            released = current.with_state(ReservationState.RELEASED)
            self._reservations[reservation_id] = released
            return Ok(released)

    async def mark_committed(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation, LedgerError]:
        found = self._reservations.get(reservation_id)
        if found is None:
            return Error(LedgerError.not_found(f"reservation {reservation_id}"))

        async with self._lock(found.key):
            current = self._reservations[reservation_id]
            match current.state:
                case ReservationState.COMMITTED:
                    return Ok(current)
                case ReservationState.RELEASED:
                    return Error(LedgerError(
                        LedgerErrorKind.INVALID,
                        f"reservation {reservation_id} already released",
                    ))
                case ReservationState.HELD:
                    committed = current.with_state(ReservationState.COMMITTED)
                    self._reservations[reservation_id] = committed
                    return Ok(committed)

    async def get_reservation(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation | None, LedgerError]:
        return Ok(self._reservations.get(reservation_id))

    async def reservations_for(
        self,
        order_id: OrderId,
    ) -> Result[tuple[StockReservation, ...], LedgerError]:
        return Ok(tuple(
            r for r in self._reservations.values() if r.order_id == order_id
        ))

    async def restock(self, key: VariantKey, quantity: int) -> Result[Variant, LedgerError]:
        async with self._lock(key):
            variant = self._variants.get(key)
            if variant is None:
                return Error(LedgerError.not_found(f"variant {key}"))
            updated = Variant(
                key=key,
                qty=variant.qty + quantity,
                sold=variant.sold,
                price=variant.price,
            )
            self._variants[key] = updated
            return Ok(updated)


__all__ = (
    "LedgerStore",
    "MemoryLedgerStore",
)
