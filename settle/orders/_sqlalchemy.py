"""
SQLAlchemy order store.

Money columns hold minor units (paise). Owned collections and optional
sub-records are JSON columns; the status column is parsed through
`parse_status` on the way out so legacy labels map onto the closed enum.

Writes are guarded by the version column:

    UPDATE orders SET ..., version = :v + 1 WHERE id = :id AND version = :v
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, cast

from sqlalchemy import JSON, DateTime, Integer, String, func, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Error, Ok, Result

from settle._types import OrderId, StoreError, from_minor, to_minor
from settle.cart import CartLine
from settle.db import Base, aware
from settle.orders._types import (
    LEGACY_STATUS_LABELS,
    Order,
    OrderStatus,
    PaymentDetails,
    PaymentFailure,
    RefundDetails,
    ShippingAddress,
    StaleOrder,
    parse_status,
)
from settle.pricing import PriceBreakdown


# ═══════════════════════════════════════════════════════════════════════════════
# Table
# ═══════════════════════════════════════════════════════════════════════════════

class OrderTable(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)

    lines: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    shipping_address: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    reservation_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)

    total_before_discount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    total_saved_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_price_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    tax_price_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    total_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    coupon_applied: Mapped[str | None] = mapped_column(String(64), nullable=True)

    gateway_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    refund_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    payment_failure: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ═══════════════════════════════════════════════════════════════════════════════
# Row codec
# ═══════════════════════════════════════════════════════════════════════════════

def _iso(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _line_to_json(line: CartLine) -> dict[str, Any]:
    return {
        "product_id": line.product_id,
        "name": line.name,
        "size": line.size,
        "quantity": line.quantity,
        "unit_price": str(line.unit_price),
        "color": line.color,
        "image": line.image,
        "max_quantity": line.max_quantity,
    }


def _line_from_json(data: dict[str, Any]) -> CartLine:
    return CartLine(
        product_id=data["product_id"],
        name=data["name"],
        size=data["size"],
        quantity=data["quantity"],
        unit_price=Decimal(data["unit_price"]),
        color=data.get("color"),
        image=data.get("image"),
        max_quantity=data.get("max_quantity"),
    )


def _address_to_json(address: ShippingAddress) -> dict[str, Any]:
    return {
        "first_name": address.first_name,
        "last_name": address.last_name,
        "phone_number": address.phone_number,
        "address1": address.address1,
        "address2": address.address2,
        "city": address.city,
        "state": address.state,
        "zip_code": address.zip_code,
        "country": address.country,
    }


def _payment_to_json(details: PaymentDetails | None) -> dict[str, Any] | None:
    if details is None:
        return None
    return {
        "method": details.method,
        "bank": details.bank,
        "wallet": details.wallet,
        "vpa": details.vpa,
        "email": details.email,
        "acquirer_data": dict(details.acquirer_data),
    }


def _refund_to_json(details: RefundDetails | None) -> dict[str, Any] | None:
    if details is None:
        return None
    return {
        "id": details.id,
        "amount_minor": to_minor(details.amount),
        "status": details.status,
        "speed_processed": details.speed_processed,
        "processed_at": _iso(details.processed_at),
    }


def _refund_from_json(data: dict[str, Any] | None) -> RefundDetails | None:
    if data is None:
        return None
    processed_at = data.get("processed_at")
    return RefundDetails(
        id=data["id"],
        amount=from_minor(data["amount_minor"]),
        status=data["status"],
        speed_processed=data.get("speed_processed"),
        processed_at=None if processed_at is None else datetime.fromisoformat(processed_at),
    )


def _failure_to_json(failure: PaymentFailure | None) -> dict[str, Any] | None:
    if failure is None:
        return None
    return {
        "payment_id": failure.payment_id,
        "code": failure.code,
        "description": failure.description,
        "at": failure.at.isoformat(),
    }


def _failure_from_json(data: dict[str, Any] | None) -> PaymentFailure | None:
    if data is None:
        return None
    return PaymentFailure(
        payment_id=data["payment_id"],
        code=data.get("code"),
        description=data.get("description"),
        at=datetime.fromisoformat(data["at"]),
    )


def _status_labels(statuses: frozenset[OrderStatus]) -> list[str]:
    """Lower-case labels stored for `statuses`, legacy ones included."""
    labels = [s.value for s in statuses]
    labels.extend(label for label, status in LEGACY_STATUS_LABELS.items() if status in statuses)
    return sorted(labels)


def _mutable_columns(order: Order) -> dict[str, Any]:
    """Columns that may change after creation."""
    return {
        "status": order.status.value,
        "reservation_ids": list(order.reservation_ids),
        "gateway_order_id": order.gateway_order_id,
        "gateway_payment_id": order.gateway_payment_id,
        "payment_details": _payment_to_json(order.payment_details),
        "refund_details": _refund_to_json(order.refund_details),
        "payment_failure": _failure_to_json(order.payment_failure),
        "paid_at": order.paid_at,
        "delivered_at": order.delivered_at,
        "cancelled_at": order.cancelled_at,
        "refunded_at": order.refunded_at,
    }


def order_to_row(order: Order) -> OrderTable:
    pricing = order.pricing
    return OrderTable(
        id=order.id,
        user_id=order.user_id,
        currency=order.currency,
        payment_method=order.payment_method,
        lines=[_line_to_json(line) for line in order.lines],
        shipping_address=_address_to_json(order.shipping_address),
        total_before_discount_minor=to_minor(pricing.total_before_discount),
        total_saved_minor=to_minor(pricing.total_saved),
        shipping_price_minor=to_minor(pricing.shipping_price),
        tax_price_minor=to_minor(pricing.tax_price),
        total_minor=to_minor(pricing.total),
        coupon_applied=pricing.coupon_applied,
        created_at=order.created_at,
        version=order.version,
        **_mutable_columns(order),
    )


def row_to_order(row: OrderTable) -> Order:
    payment = row.payment_details
    return Order(
        id=row.id,
        user_id=row.user_id,
        lines=tuple(_line_from_json(line) for line in row.lines),
        shipping_address=ShippingAddress(**row.shipping_address),
        payment_method=row.payment_method,
        pricing=PriceBreakdown(
            total_before_discount=from_minor(row.total_before_discount_minor),
            total_saved=from_minor(row.total_saved_minor),
            shipping_price=from_minor(row.shipping_price_minor),
            tax_price=from_minor(row.tax_price_minor),
            total=from_minor(row.total_minor),
            coupon_applied=row.coupon_applied,
        ),
        currency=row.currency,
        status=parse_status(row.status).unwrap(),
        created_at=cast(datetime, aware(row.created_at)),
        reservation_ids=tuple(row.reservation_ids),
        paid_at=aware(row.paid_at),
        delivered_at=aware(row.delivered_at),
        cancelled_at=aware(row.cancelled_at),
        refunded_at=aware(row.refunded_at),
        gateway_order_id=row.gateway_order_id,
        gateway_payment_id=row.gateway_payment_id,
        payment_details=None if payment is None else PaymentDetails(**payment),
        refund_details=_refund_from_json(row.refund_details),
        payment_failure=_failure_from_json(row.payment_failure),
        version=row.version,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════

class SQLAlchemyOrderStore:
    """OrderStore over the orders table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, order: Order) -> Result[Order, StoreError]:
        try:
            async with self._session_factory() as session, session.begin():
                session.add(order_to_row(order))
                return Ok(order)

        except Exception as e:
            return Error(StoreError(f"Failed to insert order: {e}", e))

    async def get(self, order_id: OrderId) -> Result[Order | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(OrderTable, order_id)
                return Ok(None if row is None else row_to_order(row))

        except Exception as e:
            return Error(StoreError(f"Failed to get order: {e}", e))

    async def update(
        self,
        order: Order,
        expected_version: int,
    ) -> Result[Order, StaleOrder | StoreError]:
        try:
            async with self._session_factory() as session, session.begin():
                stmt = (
                    update(OrderTable)
                    .where(
                        OrderTable.id == order.id,
                        OrderTable.version == expected_version,
                    )
                    .values(version=expected_version + 1, **_mutable_columns(order))
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))

                if cursor.rowcount == 0:
                    exists = await session.get(OrderTable, order.id)
                    if exists is None:
                        return Error(StoreError(f"order {order.id} not found"))
                    return Error(StaleOrder(order.id, expected_version))

                row = await session.get(OrderTable, order.id)
                return Ok(row_to_order(cast(OrderTable, row)))

        except Exception as e:
            return Error(StoreError(f"Failed to update order: {e}", e))

    async def find_by_gateway_order(
        self,
        gateway_order_id: str,
    ) -> Result[Order | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(OrderTable).where(OrderTable.gateway_order_id == gateway_order_id)
                row = (await session.execute(stmt)).scalars().first()
                return Ok(None if row is None else row_to_order(row))

        except Exception as e:
            return Error(StoreError(f"Failed to find order: {e}", e))

    async def list_by_status(
        self,
        statuses: frozenset[OrderStatus],
        created_before: datetime | None = None,
    ) -> Result[tuple[Order, ...], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(OrderTable).where(
                    func.lower(func.trim(OrderTable.status)).in_(_status_labels(statuses))
                )
                if created_before is not None:
                    stmt = stmt.where(OrderTable.created_at < created_before)
                rows = (await session.execute(stmt.order_by(OrderTable.created_at))).scalars().all()
                return Ok(tuple(row_to_order(row) for row in rows))

        except Exception as e:
            return Error(StoreError(f"Failed to list orders: {e}", e))


__all__ = (
    "OrderTable",
    "order_to_row",
    "row_to_order",
    "SQLAlchemyOrderStore",
)
