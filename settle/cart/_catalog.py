"""
Catalog — read-only product lookups used when a line is first added.

The catalog is consulted only while building cart lines; at checkout the
snapshot is authoritative.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from kungfu import Error, Ok, Result

from settle._types import Money, VariantKey
from settle.cart._types import CartError, CartErrorKind, CartLine


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    key: VariantKey
    name: str
    price: Money
    available: int
    color: str | None = None
    image: str | None = None


class Catalog(Protocol):
    async def lookup(self, key: VariantKey) -> CatalogEntry | None:
        """Current name, price and availability, or None if unknown."""
        ...


class MemoryCatalog:
    """Dict-backed catalog for tests and local runs."""

    def __init__(self, entries: dict[VariantKey, CatalogEntry] | None = None) -> None:
        self._entries = dict(entries or {})

    def put(self, entry: CatalogEntry) -> None:
        self._entries[entry.key] = entry

    async def lookup(self, key: VariantKey) -> CatalogEntry | None:
        return self._entries.get(key)


async def line_from_catalog(
    catalog: Catalog,
    key: VariantKey,
    quantity: int,
    *,
    color: str | None = None,
) -> Result[CartLine, CartError]:
    """Build a denormalised cart line from the current catalog entry."""
    entry = await catalog.lookup(key)
    if entry is None:
        return Error(CartError(CartErrorKind.UNAVAILABLE, f"{key} is not in the catalog"))
    if entry.available < 1:
        return Error(CartError(CartErrorKind.UNAVAILABLE, f"{entry.name} is out of stock"))

    return Ok(CartLine(
        product_id=key.product_id,
        name=entry.name,
        size=key.size,
        quantity=quantity,
        unit_price=entry.price,
        color=color if color is not None else entry.color,
        image=entry.image,
        max_quantity=entry.available,
    ))


__all__ = (
    "CatalogEntry",
    "Catalog",
    "MemoryCatalog",
    "line_from_catalog",
)
