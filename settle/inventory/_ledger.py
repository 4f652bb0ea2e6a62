"""
InventoryLedger — the only writer of variant stock counters.

Example:
    ledger = InventoryLedger(MemoryLedgerStore())
    await ledger.add_variant(Variant(VariantKey("tee", "M"), qty=5, sold=0, price=money(10)))

    match await ledger.reserve(VariantKey("tee", "M"), 2, order_id="ord_1"):
        case Ok(reservation):
            ...
        case Error(InsufficientStock() as short):
            print(short.message)

    await ledger.release(reservation.id)   # qty back to 5
    await ledger.release(reservation.id)   # no-op
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from uuid import uuid4

from combinators import batch_all
from kungfu import Error, LazyCoroResult, Ok, Result

from settle._types import Clock, OrderId, ReservationId, VariantKey, utcnow
from settle.inventory._store import LedgerStore
from settle.inventory._types import (
    InsufficientStock,
    LedgerError,
    LedgerErrorKind,
    ReservationState,
    StockReservation,
    Variant,
)

logger = logging.getLogger(__name__)


def new_reservation_id() -> ReservationId:
    return f"res_{uuid4().hex}"


class InventoryLedger:
    """Reserve, commit and release stock on behalf of orders."""

    def __init__(
        self,
        store: LedgerStore,
        *,
        clock: Clock = utcnow,
        id_factory: Callable[[], ReservationId] = new_reservation_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._new_id = id_factory

    # ═══════════════════════════════════════════════════════════════════════════
    # Order-facing operations
    # ═══════════════════════════════════════════════════════════════════════════

    async def reserve(
        self,
        key: VariantKey,
        quantity: int,
        order_id: OrderId,
    ) -> Result[StockReservation, InsufficientStock | LedgerError]:
        """
        Take `quantity` units of `key` for `order_id`.

        All-or-nothing: either qty drops by `quantity` and sold rises by the
        same amount, or nothing changes and InsufficientStock is returned.
        """
        if quantity < 1:
            return Error(LedgerError(
                LedgerErrorKind.INVALID,
                f"quantity must be positive, got {quantity}",
            ))

        reservation = StockReservation(
            id=self._new_id(),
            order_id=order_id,
            key=key,
            quantity=quantity,
            state=ReservationState.HELD,
            created_at=self._clock(),
        )
        result = await self._store.take(reservation)

        match result:
            case Ok(held):
                logger.info("reserved %d x %s for %s (%s)", quantity, key, order_id, held.id)
            case Error(InsufficientStock() as short):
                logger.info("reserve refused for %s: %s", order_id, short.message)
            case Error(err):
                logger.warning("reserve failed for %s: %s", order_id, err.message)
        return result

    async def release(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation, LedgerError]:
        """Give the units back. Releasing twice is a no-op."""
        result = await self._store.give_back(reservation_id)
        match result:
            case Ok(released):
                logger.info("released %s (%d x %s)", released.id, released.quantity, released.key)
            case Error(err):
                logger.warning("release of %s failed: %s", reservation_id, err.message)
        return result

    async def commit(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation, LedgerError]:
        """Mark a held reservation as paid for. Counters stay as they are."""
        return await self._store.mark_committed(reservation_id)

    async def release_order(
        self,
        order_id: OrderId,
    ) -> Result[tuple[StockReservation, ...], LedgerError]:
        """
        Release every reservation tied to `order_id`.

        Each release is attempted even when another fails; the first
        failure is returned after all attempts.
        """
        listed = await self._store.reservations_for(order_id)
        if isinstance(listed, Error):
            return listed

        pending = [r for r in listed.value if not r.is_released]
        outcomes = await batch_all(
            pending,
            lambda r: LazyCoroResult(lambda: self.release(r.id)),
        )

        released: list[StockReservation] = [r for r in listed.value if r.is_released]
        first_error: LedgerError | None = None
        for outcome in outcomes.unwrap():
            match outcome:
                case Ok(reservation):
                    released.append(reservation)
                case Error(err):
                    first_error = first_error or err

        if first_error is not None:
            return Error(first_error)
        return Ok(tuple(released))

    async def commit_order(
        self,
        order_id: OrderId,
    ) -> Result[tuple[StockReservation, ...], LedgerError]:
        """Commit every held reservation of `order_id`."""
        listed = await self._store.reservations_for(order_id)
        if isinstance(listed, Error):
            return listed

        committed: list[StockReservation] = []
        for reservation in listed.value:
            if reservation.state != ReservationState.HELD:
                continue
            match await self.commit(reservation.id):
                case Ok(done):
                    committed.append(done)
                case Error(err):
                    return Error(err)
        return Ok(tuple(committed))

    # ═══════════════════════════════════════════════════════════════════════════
    # Queries
    # ═══════════════════════════════════════════════════════════════════════════

    async def stock(self, key: VariantKey) -> Result[Variant, LedgerError]:
        match await self._store.get_variant(key):
            case Ok(None):
                return Error(LedgerError.not_found(f"variant {key}"))
            case Ok(variant):
                return Ok(variant)
            case Error(err):
                return Error(err)

    async def reservations_for(
        self,
        order_id: OrderId,
    ) -> Result[tuple[StockReservation, ...], LedgerError]:
        return await self._store.reservations_for(order_id)

    # ═══════════════════════════════════════════════════════════════════════════
    # Admin
    # ═══════════════════════════════════════════════════════════════════════════

    async def add_variant(self, variant: Variant) -> Result[Variant, LedgerError]:
        """Seed or overwrite a variant's counters."""
        if variant.qty < 0 or variant.sold < 0:
            return Error(LedgerError(
                LedgerErrorKind.INVALID,
                f"counters must be non-negative for {variant.key}",
            ))
        return (await self._store.put_variant(variant)).map(lambda _: variant)

    async def restock(self, key: VariantKey, quantity: int) -> Result[Variant, LedgerError]:
        if quantity < 1:
            return Error(LedgerError(
                LedgerErrorKind.INVALID,
                f"restock quantity must be positive, got {quantity}",
            ))
        result = await self._store.restock(key, quantity)
        if isinstance(result, Ok):
            logger.info("restocked %s by %d, now %d", key, quantity, result.value.qty)
        return result


__all__ = (
    "InventoryLedger",
    "new_reservation_id",
)
