"""
Engine — wires stores, ledger, manager, checkout and gateway adapter.

    # tests, local runs
    engine = memory_engine(Settings())

    # production
    engine, db = await sql_engine(Settings.from_env(), gateway=razorpay_client)
    ...
    await db.dispose()
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from settle._types import Clock, utcnow
from settle.checkout import CheckoutService
from settle.config import Settings
from settle.coupon import CouponBook, CouponEvaluator, MemoryCouponBook, SQLAlchemyCouponBook
from settle.db import create_database
from settle.gateway import GatewayClient, PaymentGatewayAdapter
from settle.inventory import InventoryLedger, LedgerStore, MemoryLedgerStore, SQLAlchemyLedgerStore
from settle.orders import (
    MemoryOrderStore,
    OrderManager,
    OrderStore,
    PendingOrderSweeper,
    SQLAlchemyOrderStore,
)


@dataclass(frozen=True, slots=True)
class Engine:
    settings: Settings
    ledger: InventoryLedger
    coupon_book: CouponBook
    coupons: CouponEvaluator
    orders: OrderManager
    checkout: CheckoutService
    gateway: PaymentGatewayAdapter
    sweeper: PendingOrderSweeper
    clock: Clock = utcnow


def build_engine(
    settings: Settings,
    *,
    ledger_store: LedgerStore,
    order_store: OrderStore,
    coupon_book: CouponBook,
    gateway: GatewayClient | None = None,
    clock: Clock = utcnow,
) -> Engine:
    ledger = InventoryLedger(ledger_store, clock=clock)
    coupons = CouponEvaluator(coupon_book)
    orders = OrderManager(
        order_store,
        ledger,
        clock=clock,
        currency=settings.currency,
        pending_ttl=settings.pending_order_ttl,
    )
    return Engine(
        settings=settings,
        ledger=ledger,
        coupon_book=coupon_book,
        coupons=coupons,
        orders=orders,
        checkout=CheckoutService(orders, coupons, settings, gateway=gateway, clock=clock),
        gateway=PaymentGatewayAdapter(
            orders,
            webhook_secret=settings.webhook_secret,
            key_secret=settings.key_secret,
        ),
        sweeper=PendingOrderSweeper(orders),
        clock=clock,
    )


def memory_engine(
    settings: Settings,
    *,
    gateway: GatewayClient | None = None,
    clock: Clock = utcnow,
) -> Engine:
    return build_engine(
        settings,
        ledger_store=MemoryLedgerStore(),
        order_store=MemoryOrderStore(),
        coupon_book=MemoryCouponBook(),
        gateway=gateway,
        clock=clock,
    )


async def sql_engine(
    settings: Settings,
    *,
    gateway: GatewayClient | None = None,
    clock: Clock = utcnow,
) -> tuple[Engine, AsyncEngine]:
    """Create tables at settings.database_url and build an engine over them."""
    session_factory, db = await create_database(settings.database_url)
    engine = build_engine(
        settings,
        ledger_store=SQLAlchemyLedgerStore(session_factory),
        order_store=SQLAlchemyOrderStore(session_factory),
        coupon_book=SQLAlchemyCouponBook(session_factory),
        gateway=gateway,
        clock=clock,
    )
    return engine, db


__all__ = (
    "Engine",
    "build_engine",
    "memory_engine",
    "sql_engine",
)
