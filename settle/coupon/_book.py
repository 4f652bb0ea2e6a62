"""
Coupon book — where coupons are kept.

Codes arrive normalised (upper-case) from the evaluator.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Protocol

from sqlalchemy import Date, Integer, String, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Error, Ok, Result

from settle._types import StoreError, from_minor, to_minor
from settle.coupon._types import Coupon, CouponKind, normalize_code
from settle.db import Base

# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class CouponBook(Protocol):
    async def find(self, code: str) -> Result[Coupon | None, StoreError]:
        """Coupon by normalised code. Returns Ok(None) if not found."""
        ...

    async def all(self) -> Result[tuple[Coupon, ...], StoreError]:
        ...

    async def put(self, coupon: Coupon) -> Result[None, StoreError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCouponBook:
    def __init__(self, coupons: tuple[Coupon, ...] = ()) -> None:
        self._coupons = {normalize_code(c.code): c for c in coupons}

    async def find(self, code: str) -> Result[Coupon | None, StoreError]:
        return Ok(self._coupons.get(normalize_code(code)))

    async def all(self) -> Result[tuple[Coupon, ...], StoreError]:
        return Ok(tuple(self._coupons.values()))

    async def put(self, coupon: Coupon) -> Result[None, StoreError]:
        self._coupons[normalize_code(coupon.code)] = coupon
        return Ok(None)


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy
# ═══════════════════════════════════════════════════════════════════════════════


class CouponTable(Base):
    __tablename__ = "coupons"

    code: Mapped[str] = mapped_column(String(64), primary_key=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    discount: Mapped[str] = mapped_column(String(32), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    minimum_order_minor: Mapped[int | None] = mapped_column(Integer, nullable=True)


class SQLAlchemyCouponBook:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find(self, code: str) -> Result[Coupon | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(CouponTable, normalize_code(code))
                return Ok(None if row is None else self._to_coupon(row))

        except Exception as e:
            return Error(StoreError(f"Failed to get coupon: {e}", e))

    async def all(self) -> Result[tuple[Coupon, ...], StoreError]:
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(select(CouponTable))).scalars().all()
                return Ok(tuple(self._to_coupon(row) for row in rows))

        except Exception as e:
            return Error(StoreError(f"Failed to list coupons: {e}", e))

    async def put(self, coupon: Coupon) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session, session.begin():
                minimum = coupon.minimum_order_value
                await session.merge(CouponTable(
                    code=normalize_code(coupon.code),
                    start_date=coupon.start_date,
                    end_date=coupon.end_date,
                    discount=str(coupon.discount),
                    kind=coupon.kind.value,
                    minimum_order_minor=None if minimum is None else to_minor(minimum),
                ))
                return Ok(None)

        except Exception as e:
            return Error(StoreError(f"Failed to put coupon: {e}", e))

    def _to_coupon(self, row: CouponTable) -> Coupon:
        minimum = row.minimum_order_minor
        return Coupon(
            code=row.code,
            start_date=row.start_date,
            end_date=row.end_date,
            discount=Decimal(row.discount),
            kind=CouponKind(row.kind),
            minimum_order_value=None if minimum is None else from_minor(minimum),
        )


__all__ = (
    "CouponBook",
    "MemoryCouponBook",
    "CouponTable",
    "SQLAlchemyCouponBook",
)
