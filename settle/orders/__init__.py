"""
Orders — lifecycle state machine, stores and the order manager.

    from settle.orders import OrderManager, MemoryOrderStore

    manager = OrderManager(MemoryOrderStore(), ledger)
    order = (await manager.create(snap, breakdown, address, "razorpay")).unwrap()
"""

from settle.orders._types import (
    OrderStatus,
    LEGACY_STATUS_LABELS,
    UnknownStatus,
    parse_status,
    ShippingAddress,
    PaymentDetails,
    RefundDetails,
    PaymentFailure,
    Order,
    InvalidTransition,
    OrderNotFound,
    GatewayMismatch,
    StaleOrder,
)
from settle.orders._machine import Transition, ALLOWED_FROM
from settle.orders._store import OrderStore, MemoryOrderStore
from settle.orders._sqlalchemy import OrderTable, SQLAlchemyOrderStore
from settle.orders._manager import OrderManager, new_order_id
from settle.orders._sweep import PendingOrderSweeper

__all__ = (
    "OrderStatus",
    "LEGACY_STATUS_LABELS",
    "UnknownStatus",
    "parse_status",
    "ShippingAddress",
    "PaymentDetails",
    "RefundDetails",
    "PaymentFailure",
    "Order",
    "InvalidTransition",
    "OrderNotFound",
    "GatewayMismatch",
    "StaleOrder",
    "Transition",
    "ALLOWED_FROM",
    "OrderStore",
    "MemoryOrderStore",
    "OrderTable",
    "SQLAlchemyOrderStore",
    "OrderManager",
    "new_order_id",
    "PendingOrderSweeper",
)
