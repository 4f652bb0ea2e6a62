"""
Database layer — declarative base and engine setup.

Tables live next to the stores that own them (`settle.inventory._sqlalchemy`,
`settle.orders._sqlalchemy`) and register on `Base.metadata` at import time.
"""

from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════

class Base(DeclarativeBase):
    pass


def aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on the way back; timestamps are stored as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════

async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
    *,
    busy_timeout: float = 30.0,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """
    Create tables and return (session_factory, engine).

    On SQLite, a writer that finds the database locked waits up to
    `busy_timeout` seconds for the other transaction to commit.
    """
    connect_args = {"timeout": busy_timeout} if url.startswith("sqlite") else {}
    engine = create_async_engine(url, echo=False, connect_args=connect_args)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


__all__ = (
    "Base",
    "aware",
    "create_database",
)
