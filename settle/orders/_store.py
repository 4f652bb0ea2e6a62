"""
Order store — storage protocol with optimistic versioning.

`update(order, expected_version)` writes only if the stored version still
equals `expected_version`, and returns the order with version + 1.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from kungfu import Error, Ok, Result

from settle._types import OrderId, StoreError
from settle.orders._types import Order, OrderStatus, StaleOrder

# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStore(Protocol):
    async def insert(self, order: Order) -> Result[Order, StoreError]:
        ...

    async def get(self, order_id: OrderId) -> Result[Order | None, StoreError]:
        """Returns Ok(None) if not found."""
        ...

    async def update(
        self,
        order: Order,
        expected_version: int,
    ) -> Result[Order, StaleOrder | StoreError]:
        """Compare-and-swap on version."""
        ...

    async def find_by_gateway_order(
        self,
        gateway_order_id: str,
    ) -> Result[Order | None, StoreError]:
        ...

    async def list_by_status(
        self,
        statuses: frozenset[OrderStatus],
        created_before: datetime | None = None,
    ) -> Result[tuple[Order, ...], StoreError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryOrderStore:
    """In-memory order store for testing."""

    def __init__(self) -> None:
        self._orders: dict[OrderId, Order] = {}
        self._lock = asyncio.Lock()

    async def insert(self, order: Order) -> Result[Order, StoreError]:
        async with self._lock:
            if order.id in self._orders:
                return Error(StoreError(f"order {order.id} already exists"))
            self._orders[order.id] = order
            return Ok(order)

    async def get(self, order_id: OrderId) -> Result[Order | None, StoreError]:
        return Ok(self._orders.get(order_id))

    async def update(
        self,
        order: Order,
        expected_version: int,
    ) -> Result[Order, StaleOrder | StoreError]:
        async with self._lock:
            current = self._orders.get(order.id)
            if current is None:
                return Error(StoreError(f"order {order.id} not found"))
            if current.version != expected_version:
                return Error(StaleOrder(order.id, expected_version))

            written = replace(order, version=expected_version + 1)
            self._orders[order.id] = written
            return Ok(written)

    async def find_by_gateway_order(
        self,
        gateway_order_id: str,
    ) -> Result[Order | None, StoreError]:
        for order in self._orders.values():
            if order.gateway_order_id == gateway_order_id:
                return Ok(order)
        return Ok(None)

    async def list_by_status(
        self,
        statuses: frozenset[OrderStatus],
        created_before: datetime | None = None,
    ) -> Result[tuple[Order, ...], StoreError]:
        return Ok(tuple(
            o for o in self._orders.values()
            if o.status in statuses
            and (created_before is None or o.created_at < created_before)
        ))


__all__ = (
    "OrderStore",
    "MemoryOrderStore",
)
