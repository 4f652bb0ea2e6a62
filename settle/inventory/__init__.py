"""
Inventory — per-variant stock counters with explicit reservations.

    from settle.inventory import InventoryLedger, MemoryLedgerStore

    ledger = InventoryLedger(MemoryLedgerStore())
    reservation = (await ledger.reserve(key, 2, order_id)).unwrap()
    await ledger.commit(reservation.id)    # payment confirmed
    await ledger.release(reservation.id)   # refund: counters restored
"""

from settle.inventory._types import (
    Variant,
    ReservationState,
    StockReservation,
    Shortage,
    InsufficientStock,
    LedgerErrorKind,
    LedgerError,
)
from settle.inventory._store import LedgerStore, MemoryLedgerStore
from settle.inventory._sqlalchemy import (
    VariantTable,
    ReservationTable,
    SQLAlchemyLedgerStore,
)
from settle.inventory._ledger import InventoryLedger, new_reservation_id

__all__ = (
    "Variant",
    "ReservationState",
    "StockReservation",
    "Shortage",
    "InsufficientStock",
    "LedgerErrorKind",
    "LedgerError",
    "LedgerStore",
    "MemoryLedgerStore",
    "VariantTable",
    "ReservationTable",
    "SQLAlchemyLedgerStore",
    "InventoryLedger",
    "new_reservation_id",
)
