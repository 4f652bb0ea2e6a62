"""
Cart — line editing and checkout snapshots.

    from settle.cart import Cart, add_line, snapshot

    cart = add_line(Cart("user_1"), line).unwrap()
    snap = snapshot(cart, utcnow()).unwrap()
"""

from settle.cart._types import (
    CartLine,
    Cart,
    CartSnapshot,
    EmptyCart,
    CartErrorKind,
    CartError,
)
from settle.cart._ops import (
    snapshot,
    add_line,
    remove_line,
    update_quantity,
    clear,
)
from settle.cart._catalog import (
    CatalogEntry,
    Catalog,
    MemoryCatalog,
    line_from_catalog,
)

__all__ = (
    "CartLine",
    "Cart",
    "CartSnapshot",
    "EmptyCart",
    "CartErrorKind",
    "CartError",
    "snapshot",
    "add_line",
    "remove_line",
    "update_quantity",
    "clear",
    "CatalogEntry",
    "Catalog",
    "MemoryCatalog",
    "line_from_catalog",
)
