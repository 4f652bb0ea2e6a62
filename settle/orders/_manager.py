"""
OrderManager — order lifecycle coordinated with the inventory ledger.

Every operation on one order runs under that order's asyncio.Lock, and
every write is a version compare-and-swap in the store, so two writers for
the same order (a webhook and a refund, say) never interleave.

Stock and orders are kept consistent by compensation, not by a shared
transaction:

    create   reserve line 1 .. reserve line n → persist pending order
             any failure releases what was already reserved
    paid     commit reservations
    refund   persist refunded → release reservations
    cancel   persist cancelled → release reservations

A release that fails after the order is already refunded or cancelled is
logged and picked up again by `reconcile`.

Example:
    manager = OrderManager(MemoryOrderStore(), ledger)

    order = (await manager.create(snap, breakdown, address, "razorpay")).unwrap()
    await manager.confirm_payment(order.id, "order_G1", "pay_P1", details)
    await manager.confirm_payment(order.id, "order_G1", "pay_P1", details)  # no-op
    await manager.mark_delivered(order.id)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from uuid import uuid4

from kungfu import Error, LazyCoroResult, Ok, Result

from settle._types import Clock, OrderId, StoreError, UserId, utcnow
from settle.cart import CartLine, CartSnapshot
from settle.inventory import (
    InsufficientStock,
    InventoryLedger,
    LedgerError,
    Shortage,
    StockReservation,
)
from settle.orders import _machine as M
from settle.orders._store import OrderStore
from settle.orders._types import (
    GatewayMismatch,
    InvalidTransition,
    Order,
    OrderNotFound,
    OrderStatus,
    PaymentDetails,
    PaymentFailure,
    RefundDetails,
    ShippingAddress,
    StaleOrder,
)
from settle.pricing import PriceBreakdown
from settle.saga import SagaError, SagaStep, run_saga

logger = logging.getLogger(__name__)

type CreateError = InsufficientStock | LedgerError | StoreError
type WriteError = OrderNotFound | InvalidTransition | StaleOrder | StoreError
type PaymentError = WriteError | GatewayMismatch


def new_order_id() -> OrderId:
    return f"ord_{uuid4().hex}"


class OrderManager:
    """Order lifecycle state machine plus stock coordination."""

    def __init__(
        self,
        store: OrderStore,
        ledger: InventoryLedger,
        *,
        clock: Clock = utcnow,
        id_factory: Callable[[], OrderId] = new_order_id,
        currency: str = "INR",
        pending_ttl: timedelta = timedelta(minutes=30),
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._clock = clock
        self._new_id = id_factory
        self._currency = currency
        self._pending_ttl = pending_ttl
        # order id → (lock, holders + waiters); dropped when the count hits zero
        self._locks: dict[OrderId, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _lock(self, order_id: OrderId) -> AsyncIterator[None]:
        lock, users = self._locks.get(order_id, (asyncio.Lock(), 0))
        self._locks[order_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[order_id]
            if users == 1:
                del self._locks[order_id]
            else:
                self._locks[order_id] = (lock, users - 1)

    # ═══════════════════════════════════════════════════════════════════════════
    # create
    # ═══════════════════════════════════════════════════════════════════════════

    async def create(
        self,
        snapshot: CartSnapshot,
        pricing: PriceBreakdown,
        address: ShippingAddress,
        payment_method: str,
        user_id: UserId | None = None,
    ) -> Result[Order, CreateError]:
        """
        Reserve every line, then persist the order as pending.

        If any line cannot be reserved, reservations already taken are
        released and InsufficientStock names every short line.
        """
        order_id = self._new_id()
        held: list[StockReservation] = []

        def reserve_step(line: CartLine) -> SagaStep[object, CreateError]:
            async def reserve() -> Result[StockReservation, InsufficientStock | LedgerError]:
                result = await self._ledger.reserve(line.key, line.quantity, order_id)
                if isinstance(result, Ok):
                    held.append(result.value)
                return result

            return SagaStep(
                name=f"reserve {line.uid}",
                action=LazyCoroResult(reserve),
                compensate=lambda r: self._ledger.release(r.id),
            )

        async def persist() -> Result[Order, StoreError]:
            return await self._store.insert(Order(
                id=order_id,
                user_id=user_id if user_id is not None else snapshot.user_id,
                lines=snapshot.lines,
                shipping_address=address,
                payment_method=payment_method,
                pricing=pricing,
                currency=self._currency,
                status=OrderStatus.PENDING,
                created_at=self._clock(),
                reservation_ids=tuple(r.id for r in held),
            ))

        steps = [reserve_step(line) for line in snapshot.lines]
        steps.append(SagaStep(name="persist order", action=LazyCoroResult(persist)))

        match await run_saga(steps):
            case Ok(done):
                order = done.values[-1]
                logger.info(
                    "order %s created for %s: %d line(s), total %s",
                    order.id, order.user_id, len(order.lines), order.total,
                )
                return Ok(order)

            case Error(failed):
                return Error(await self._creation_error(snapshot, failed))

    async def _creation_error(
        self,
        snapshot: CartSnapshot,
        failed: SagaError[CreateError],
    ) -> CreateError:
        if not failed.rollback_complete:
            logger.error(
                "checkout rollback incomplete: %d release(s) failed",
                failed.compensators_failed,
            )

        if not isinstance(failed.error, InsufficientStock):
            logger.warning("order creation failed at %s: %s", failed.step_name, failed.error)
            return failed.error

        # step_failed is 1-based over lines; report the remaining short lines too
        shortages: list[Shortage] = list(failed.error.shortages)
        for line in snapshot.lines[failed.step_failed:]:
            match await self._ledger.stock(line.key):
                case Ok(variant) if variant.qty < line.quantity:
                    shortages.append(Shortage(line.key, line.quantity, variant.qty))
                case _:
                    pass
        return InsufficientStock(tuple(shortages))

    # ═══════════════════════════════════════════════════════════════════════════
    # Transitions
    # ═══════════════════════════════════════════════════════════════════════════

    async def _load(self, order_id: OrderId) -> Result[Order, OrderNotFound | StoreError]:
        match await self._store.get(order_id):
            case Ok(None):
                return Error(OrderNotFound(order_id))
            case Ok(order):
                return Ok(order)
            case Error(err):
                return Error(err)

    async def _apply(
        self,
        order: Order,
        transition: Result[Order, InvalidTransition],
    ) -> Result[Order, InvalidTransition | StaleOrder | StoreError]:
        match transition:
            case Ok(updated):
                written = await self._store.update(updated, expected_version=order.version)
                if isinstance(written, Ok):
                    logger.info(
                        "order %s: %s → %s",
                        order.id, order.status.value, written.value.status.value,
                    )
                return written
            case Error(invalid):
                logger.warning(invalid.message)
                return Error(invalid)

    async def confirm_payment(
        self,
        order_id: OrderId,
        gateway_order_id: str,
        gateway_payment_id: str,
        payment_details: PaymentDetails | None = None,
    ) -> Result[Order, PaymentError]:
        """
        pending → paid, then commit the order's reservations.

        A repeat with the same payment and gateway order ids on a paid or
        delivered order is a no-op. Any other pair for a paid order is a
        GatewayMismatch.
        """
        async with self._lock(order_id):
            loaded = await self._load(order_id)
            if isinstance(loaded, Error):
                return loaded
            order = loaded.value

            if order.status.is_paid:
                if order.gateway_payment_id != gateway_payment_id:
                    return Error(self._mismatch(
                        order_id,
                        f"already paid by {order.gateway_payment_id}, got {gateway_payment_id}",
                    ))
                if order.gateway_order_id != gateway_order_id:
                    return Error(self._mismatch(
                        order_id,
                        f"payment {gateway_payment_id} belongs to {order.gateway_order_id}, "
                        f"got {gateway_order_id}",
                    ))
                logger.info("order %s: duplicate payment %s ignored", order_id, gateway_payment_id)
                return Ok(order)

            if order.gateway_order_id is not None and order.gateway_order_id != gateway_order_id:
                return Error(self._mismatch(
                    order_id,
                    f"gateway order {gateway_order_id} does not match {order.gateway_order_id}",
                ))

            written = await self._apply(order, M.confirm_payment(
                order,
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
                payment_details=payment_details,
                now=self._clock(),
            ))
            if isinstance(written, Error):
                return written

            committed = await self._ledger.commit_order(order_id)
            if isinstance(committed, Error):
                logger.error(
                    "order %s paid but reservations not committed: %s",
                    order_id, committed.error.message,
                )
            return written

    async def mark_delivered(self, order_id: OrderId) -> Result[Order, WriteError]:
        """paid → delivered."""
        async with self._lock(order_id):
            loaded = await self._load(order_id)
            if isinstance(loaded, Error):
                return loaded
            order = loaded.value
            return await self._apply(order, M.mark_delivered(order, now=self._clock()))

    async def refund(
        self,
        order_id: OrderId,
        refund_details: RefundDetails,
        gateway_payment_id: str | None = None,
        gateway_order_id: str | None = None,
    ) -> Result[Order, PaymentError]:
        """
        paid | delivered → refunded, then release every reservation.

        Gateway ids, when given, must match the ones the order was paid
        with; otherwise the refund is a GatewayMismatch and nothing moves.
        A repeat with the same refund id is a no-op.
        """
        async with self._lock(order_id):
            loaded = await self._load(order_id)
            if isinstance(loaded, Error):
                return loaded
            order = loaded.value

            if gateway_payment_id is not None and gateway_payment_id != order.gateway_payment_id:
                return Error(self._mismatch(
                    order_id,
                    f"refund for payment {gateway_payment_id}, order paid by {order.gateway_payment_id}",
                ))
            if gateway_order_id is not None and gateway_order_id != order.gateway_order_id:
                return Error(self._mismatch(
                    order_id,
                    f"refund for gateway order {gateway_order_id}, order linked to {order.gateway_order_id}",
                ))

            if (
                order.status == OrderStatus.REFUNDED
                and order.refund_details is not None
                and order.refund_details.id == refund_details.id
            ):
                logger.info("order %s: duplicate refund %s ignored", order_id, refund_details.id)
                return Ok(order)

            written = await self._apply(order, M.refund(
                order,
                refund_details=refund_details,
                now=self._clock(),
            ))
            if isinstance(written, Ok):
                await self._release(order_id)
            return written

    async def cancel(self, order_id: OrderId) -> Result[Order, WriteError]:
        """pending → cancelled, then release every reservation."""
        async with self._lock(order_id):
            loaded = await self._load(order_id)
            if isinstance(loaded, Error):
                return loaded
            order = loaded.value

            written = await self._apply(order, M.cancel(order, now=self._clock()))
            if isinstance(written, Ok):
                await self._release(order_id)
            return written

    async def attach_gateway_order(
        self,
        order_id: OrderId,
        gateway_order_id: str,
    ) -> Result[Order, PaymentError]:
        """Record the gateway order opened for a pending order."""
        async with self._lock(order_id):
            loaded = await self._load(order_id)
            if isinstance(loaded, Error):
                return loaded
            order = loaded.value

            if order.gateway_order_id == gateway_order_id:
                return Ok(order)
            if order.gateway_order_id is not None:
                return Error(self._mismatch(
                    order_id,
                    f"already linked to gateway order {order.gateway_order_id}",
                ))
            return await self._apply(order, M.attach_gateway_order(
                order,
                gateway_order_id=gateway_order_id,
            ))

    async def record_payment_failure(
        self,
        order_id: OrderId,
        payment_id: str,
        code: str | None = None,
        description: str | None = None,
    ) -> Result[Order, WriteError]:
        """Note a failed attempt. The order stays pending so the user can retry."""
        async with self._lock(order_id):
            loaded = await self._load(order_id)
            if isinstance(loaded, Error):
                return loaded
            order = loaded.value

            failure = PaymentFailure(payment_id, code, description, at=self._clock())
            return await self._apply(order, M.record_payment_failure(order, failure=failure))

    def _mismatch(self, order_id: OrderId, reason: str) -> GatewayMismatch:
        mismatch = GatewayMismatch(order_id, reason)
        logger.warning("rejected: %s", mismatch.message)
        return mismatch

    async def _release(self, order_id: OrderId) -> None:
        released = await self._ledger.release_order(order_id)
        if isinstance(released, Error):
            logger.error(
                "order %s: reservations not released (%s), left for reconcile",
                order_id, released.error.message,
            )

    # ═══════════════════════════════════════════════════════════════════════════
    # Queries & maintenance
    # ═══════════════════════════════════════════════════════════════════════════

    async def get(self, order_id: OrderId) -> Result[Order, OrderNotFound | StoreError]:
        return await self._load(order_id)

    async def find_by_gateway_order(
        self,
        gateway_order_id: str,
    ) -> Result[Order, OrderNotFound | StoreError]:
        match await self._store.find_by_gateway_order(gateway_order_id):
            case Ok(None):
                return Error(OrderNotFound(gateway_order_id))
            case Ok(order):
                return Ok(order)
            case Error(err):
                return Error(err)

    async def sweep(self, now: datetime | None = None) -> Result[tuple[Order, ...], StoreError]:
        """
        Cancel pending orders older than the pending TTL.

        Uses the same path as `cancel`; an order paid or cancelled in the
        meantime is skipped.
        """
        cutoff = (now or self._clock()) - self._pending_ttl
        listed = await self._store.list_by_status(
            frozenset({OrderStatus.PENDING}),
            created_before=cutoff,
        )
        if isinstance(listed, Error):
            return listed

        cancelled: list[Order] = []
        for order in listed.value:
            match await self.cancel(order.id):
                case Ok(done):
                    logger.info("order %s expired unpaid, cancelled", order.id)
                    cancelled.append(done)
                case Error(InvalidTransition() | StaleOrder()):
                    continue
                case Error(err):
                    logger.warning("sweep could not cancel %s: %s", order.id, err)
        return Ok(tuple(cancelled))

    async def reconcile(
        self,
        order_id: OrderId,
    ) -> Result[Order, OrderNotFound | LedgerError | StoreError]:
        """
        Bring reservations in line with the order's state.

        Refunded or cancelled: release anything still held or committed.
        Paid or delivered: commit anything still held.
        """
        async with self._lock(order_id):
            loaded = await self._load(order_id)
            if isinstance(loaded, Error):
                return loaded
            order = loaded.value

            if order.status.is_terminal:
                outcome = await self._ledger.release_order(order_id)
            elif order.status.is_paid:
                outcome = await self._ledger.commit_order(order_id)
            else:
                return Ok(order)

            if isinstance(outcome, Error):
                return outcome
            return Ok(order)


__all__ = (
    "OrderManager",
    "new_order_id",
)
