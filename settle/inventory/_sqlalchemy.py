"""
SQLAlchemy ledger store.

Stock moves with a conditional UPDATE (compare-and-swap on qty):

    UPDATE variants
       SET qty = qty - :n, sold = sold + :n
     WHERE product_id = :p AND size = :s AND qty >= :n

rowcount == 0 means either the variant is missing or stock is short; the
row is then read back to tell the two apart. The reservation row is
written in the same transaction.

Usage:
    session_factory, engine = await create_database(url)
    ledger = InventoryLedger(SQLAlchemyLedgerStore(session_factory))
"""

from datetime import datetime
from typing import Any, cast

from sqlalchemy import DateTime, Integer, String, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Error, Ok, Result

from settle._types import OrderId, ReservationId, VariantKey, from_minor, to_minor
from settle.db import Base, aware
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
# Tables
# ═══════════════════════════════════════════════════════════════════════════════

class VariantTable(Base):
    """Per-(product, size) counters. Money in minor units."""

    __tablename__ = "variants"

    product_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    size: Mapped[str] = mapped_column(String(32), primary_key=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_minor: Mapped[int] = mapped_column(Integer, nullable=False)


class ReservationTable(Base):
    __tablename__ = "stock_reservations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    size: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _variant_pk(key: VariantKey) -> Any:
    return (VariantTable.product_id == key.product_id) & (VariantTable.size == key.size)


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════

class SQLAlchemyLedgerStore:
    """LedgerStore over two tables. Each call is one transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_variant(self, key: VariantKey) -> Result[Variant | None, LedgerError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(VariantTable, (key.product_id, key.size))
                return Ok(None if row is None else self._to_variant(row))

        except Exception as e:
            return Error(LedgerError.store(f"Failed to get variant: {e}", e))

    async def put_variant(self, variant: Variant) -> Result[None, LedgerError]:
        try:
            async with self._session_factory() as session, session.begin():
                await session.merge(VariantTable(
                    product_id=variant.key.product_id,
                    size=variant.key.size,
                    qty=variant.qty,
                    sold=variant.sold,
                    price_minor=to_minor(variant.price),
                ))
                return Ok(None)

        except Exception as e:
            return Error(LedgerError.store(f"Failed to put variant: {e}", e))

    async def take(
        self,
        reservation: StockReservation,
    ) -> Result[StockReservation, InsufficientStock | LedgerError]:
        key = reservation.key
        n = reservation.quantity
        try:
            async with self._session_factory() as session, session.begin():
                stmt = (
                    update(VariantTable)
                    .where(_variant_pk(key), VariantTable.qty >= n)
                    .values(qty=VariantTable.qty - n, sold=VariantTable.sold + n)
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))

                if cursor.rowcount == 0:
                    row = await session.get(VariantTable, (key.product_id, key.size))
                    if row is None:
                        return Error(LedgerError.not_found(f"variant {key}"))
                    return Error(InsufficientStock((Shortage(key, n, row.qty),)))

                session.add(ReservationTable(
                    id=reservation.id,
                    order_id=reservation.order_id,
                    product_id=key.product_id,
                    size=key.size,
                    quantity=n,
                    state=ReservationState.HELD.value,
                    created_at=reservation.created_at,
                ))
                return Ok(reservation.with_state(ReservationState.HELD))

        except Exception as e:
            return Error(LedgerError.store(f"Failed to reserve {key}: {e}", e))

    async def give_back(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation, LedgerError]:
        try:
            async with self._session_factory() as session, session.begin():
                # state flip first: only one releaser gets rowcount 1
                flip = (
                    update(ReservationTable)
                    .where(
                        ReservationTable.id == reservation_id,
                        ReservationTable.state != ReservationState.RELEASED.value,
                    )
                    .values(state=ReservationState.RELEASED.value)
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(flip))

                row = await session.get(ReservationTable, reservation_id)
                if row is None:
                    return Error(LedgerError.not_found(f"reservation {reservation_id}"))
                released = self._to_reservation(row).with_state(ReservationState.RELEASED)
                if cursor.rowcount == 0:
                    return Ok(released)

                restore = (
                    update(VariantTable)
                    .where(_variant_pk(released.key))
                    .values(
                        qty=VariantTable.qty + released.quantity,
                        sold=VariantTable.sold - released.quantity,
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.execute(restore)
                return Ok(released)

        except Exception as e:
            return Error(LedgerError.store(f"Failed to release {reservation_id}: {e}", e))

    async def mark_committed(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation, LedgerError]:
        try:
            async with self._session_factory() as session, session.begin():
                stmt = (
                    update(ReservationTable)
                    .where(
                        ReservationTable.id == reservation_id,
                        ReservationTable.state == ReservationState.HELD.value,
                    )
                    .values(state=ReservationState.COMMITTED.value)
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))

                row = await session.get(ReservationTable, reservation_id)
                if row is None:
                    return Error(LedgerError.not_found(f"reservation {reservation_id}"))
                if cursor.rowcount > 0:
                    return Ok(self._to_reservation(row).with_state(ReservationState.COMMITTED))

                current = self._to_reservation(row)
                if current.is_released:
                    return Error(LedgerError(
                        LedgerErrorKind.INVALID,
                        f"reservation {reservation_id} already released",
                    ))
                return Ok(current)

        except Exception as e:
            return Error(LedgerError.store(f"Failed to commit {reservation_id}: {e}", e))

    async def get_reservation(
        self,
        reservation_id: ReservationId,
    ) -> Result[StockReservation | None, LedgerError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(ReservationTable, reservation_id)
                return Ok(None if row is None else self._to_reservation(row))

        except Exception as e:
            return Error(LedgerError.store(f"Failed to get reservation: {e}", e))

    async def reservations_for(
        self,
        order_id: OrderId,
    ) -> Result[tuple[StockReservation, ...], LedgerError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(ReservationTable)
                    .where(ReservationTable.order_id == order_id)
                    .order_by(ReservationTable.created_at, ReservationTable.id)
                )
                rows = (await session.execute(stmt)).scalars().all()
                return Ok(tuple(self._to_reservation(row) for row in rows))

        except Exception as e:
            return Error(LedgerError.store(f"Failed to list reservations: {e}", e))

    async def restock(self, key: VariantKey, quantity: int) -> Result[Variant, LedgerError]:
        try:
            async with self._session_factory() as session, session.begin():
                stmt = (
                    update(VariantTable)
                    .where(_variant_pk(key))
                    .values(qty=VariantTable.qty + quantity)
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                if cursor.rowcount == 0:
                    return Error(LedgerError.not_found(f"variant {key}"))

                row = await session.get(VariantTable, (key.product_id, key.size))
                return Ok(self._to_variant(cast(VariantTable, row)))

        except Exception as e:
            return Error(LedgerError.store(f"Failed to restock {key}: {e}", e))

    def _to_variant(self, row: VariantTable) -> Variant:
        return Variant(
            key=VariantKey(row.product_id, row.size),
            qty=row.qty,
            sold=row.sold,
            price=from_minor(row.price_minor),
        )

    def _to_reservation(self, row: ReservationTable) -> StockReservation:
        return StockReservation(
            id=row.id,
            order_id=row.order_id,
            key=VariantKey(row.product_id, row.size),
            quantity=row.quantity,
            state=ReservationState(row.state),
            created_at=cast(datetime, aware(row.created_at)),
        )


__all__ = (
    "VariantTable",
    "ReservationTable",
    "SQLAlchemyLedgerStore",
)
