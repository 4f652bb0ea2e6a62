"""Tests for the inventory ledger."""

import asyncio

import pytest
from kungfu import Error, Ok

from conftest import CAP, TEE_M
from settle._types import VariantKey, money
from settle.db import create_database
from settle.inventory import (
    InsufficientStock,
    InventoryLedger,
    LedgerErrorKind,
    MemoryLedgerStore,
    ReservationState,
    SQLAlchemyLedgerStore,
    Variant,
)


async def counters(ledger: InventoryLedger, key: VariantKey) -> tuple[int, int]:
    variant = (await ledger.stock(key)).unwrap()
    return variant.qty, variant.sold


class TestReserve:
    async def test_reserve_moves_qty_to_sold(self, ledger):
        reservation = (await ledger.reserve(TEE_M, 2, "ord_1")).unwrap()

        assert reservation.state == ReservationState.HELD
        assert reservation.quantity == 2
        assert reservation.order_id == "ord_1"
        assert await counters(ledger, TEE_M) == (3, 2)

    async def test_reserve_exact_remaining_qty(self, ledger):
        assert isinstance(await ledger.reserve(TEE_M, 5, "ord_1"), Ok)
        assert await counters(ledger, TEE_M) == (0, 5)

    async def test_insufficient_stock_changes_nothing(self, ledger):
        result = await ledger.reserve(TEE_M, 6, "ord_1")

        match result:
            case Error(InsufficientStock(shortages=(short,))):
                assert short.key == TEE_M
                assert short.requested == 6
                assert short.available == 5
            case _:
                pytest.fail(f"expected InsufficientStock, got {result}")
        assert await counters(ledger, TEE_M) == (5, 0)

    async def test_shortage_message_names_line(self, ledger):
        result = await ledger.reserve(TEE_M, 9, "ord_1")
        assert isinstance(result, Error)
        assert "tee (size M)" in result.error.message
        assert "only 5 left" in result.error.message

    async def test_unknown_variant(self, ledger):
        result = await ledger.reserve(VariantKey("ghost", "XL"), 1, "ord_1")
        assert isinstance(result, Error)
        assert result.error.kind == LedgerErrorKind.NOT_FOUND

    @pytest.mark.parametrize("quantity", [0, -3])
    async def test_non_positive_quantity_rejected(self, ledger, quantity):
        result = await ledger.reserve(TEE_M, quantity, "ord_1")
        assert isinstance(result, Error)
        assert result.error.kind == LedgerErrorKind.INVALID
        assert await counters(ledger, TEE_M) == (5, 0)

    async def test_concurrent_reserves_never_oversell(self, ledger):
        results = await asyncio.gather(*(
            ledger.reserve(TEE_M, 2, f"ord_{i}") for i in range(6)
        ))

        reserved = sum(r.value.quantity for r in results if isinstance(r, Ok))
        refused = [r for r in results if isinstance(r, Error)]
        assert reserved == 4
        assert len(refused) == 4
        assert await counters(ledger, TEE_M) == (1, 4)

    async def test_concurrent_single_units_for_last_stock(self, ledger):
        results = await asyncio.gather(*(
            ledger.reserve(TEE_M, 1, f"ord_{i}") for i in range(20)
        ))
        assert sum(1 for r in results if isinstance(r, Ok)) == 5
        assert await counters(ledger, TEE_M) == (0, 5)


class TestRelease:
    async def test_release_restores_counters(self, ledger):
        before = await counters(ledger, CAP)
        reservation = (await ledger.reserve(CAP, 4, "ord_1")).unwrap()

        released = (await ledger.release(reservation.id)).unwrap()

        assert released.state == ReservationState.RELEASED
        assert await counters(ledger, CAP) == before

    async def test_release_is_idempotent(self, ledger):
        reservation = (await ledger.reserve(CAP, 4, "ord_1")).unwrap()

        for _ in range(3):
            assert isinstance(await ledger.release(reservation.id), Ok)

        assert await counters(ledger, CAP) == (10, 3)

    async def test_release_unknown_reservation(self, ledger):
        result = await ledger.release("res_missing")
        assert isinstance(result, Error)
        assert result.error.kind == LedgerErrorKind.NOT_FOUND

    async def test_release_committed_reservation(self, ledger):
        reservation = (await ledger.reserve(TEE_M, 2, "ord_1")).unwrap()
        await ledger.commit(reservation.id)

        await ledger.release(reservation.id)

        assert await counters(ledger, TEE_M) == (5, 0)

    async def test_release_order_releases_every_line(self, ledger):
        await ledger.reserve(TEE_M, 2, "ord_1")
        await ledger.reserve(CAP, 1, "ord_1")
        await ledger.reserve(TEE_M, 1, "ord_2")

        released = (await ledger.release_order("ord_1")).unwrap()

        assert len(released) == 2
        assert await counters(ledger, TEE_M) == (4, 1)
        assert await counters(ledger, CAP) == (10, 3)

    async def test_release_order_twice(self, ledger):
        await ledger.reserve(TEE_M, 2, "ord_1")
        await ledger.release_order("ord_1")
        again = await ledger.release_order("ord_1")

        assert isinstance(again, Ok)
        assert await counters(ledger, TEE_M) == (5, 0)


class TestCommit:
    async def test_commit_keeps_counters(self, ledger):
        reservation = (await ledger.reserve(TEE_M, 2, "ord_1")).unwrap()

        committed = (await ledger.commit(reservation.id)).unwrap()

        assert committed.state == ReservationState.COMMITTED
        assert await counters(ledger, TEE_M) == (3, 2)

    async def test_commit_order_skips_released(self, ledger):
        first = (await ledger.reserve(TEE_M, 1, "ord_1")).unwrap()
        await ledger.reserve(CAP, 1, "ord_1")
        await ledger.release(first.id)

        committed = (await ledger.commit_order("ord_1")).unwrap()

        assert [r.key for r in committed] == [CAP]

    async def test_commit_released_reservation_is_invalid(self, ledger):
        reservation = (await ledger.reserve(TEE_M, 1, "ord_1")).unwrap()
        await ledger.release(reservation.id)

        result = await ledger.commit(reservation.id)
        assert isinstance(result, Error)
        assert result.error.kind == LedgerErrorKind.INVALID


class TestAdmin:
    async def test_restock(self, ledger):
        restocked = (await ledger.restock(TEE_M, 3)).unwrap()
        assert restocked.qty == 8
        assert restocked.sold == 0

    async def test_restock_requires_positive_quantity(self, ledger):
        result = await ledger.restock(TEE_M, 0)
        assert isinstance(result, Error)
        assert result.error.kind == LedgerErrorKind.INVALID

    async def test_negative_counters_rejected(self):
        ledger = InventoryLedger(MemoryLedgerStore())
        result = await ledger.add_variant(Variant(TEE_M, qty=-1, sold=0, price=money(10)))
        assert isinstance(result, Error)
        assert result.error.kind == LedgerErrorKind.INVALID


class TestSQLAlchemyLedger:
    @pytest.fixture
    async def sql_ledger(self, db_url):
        session_factory, engine = await create_database(db_url)
        ledger = InventoryLedger(SQLAlchemyLedgerStore(session_factory))
        await ledger.add_variant(Variant(TEE_M, qty=5, sold=0, price=money("10.50")))
        yield ledger
        await engine.dispose()

    async def test_round_trip_variant(self, sql_ledger):
        variant = (await sql_ledger.stock(TEE_M)).unwrap()
        assert variant == Variant(TEE_M, qty=5, sold=0, price=money("10.50"))

    async def test_reserve_and_release(self, sql_ledger):
        reservation = (await sql_ledger.reserve(TEE_M, 3, "ord_1")).unwrap()
        assert await counters(sql_ledger, TEE_M) == (2, 3)

        await sql_ledger.release(reservation.id)
        await sql_ledger.release(reservation.id)

        assert await counters(sql_ledger, TEE_M) == (5, 0)
        stored = (await sql_ledger.reservations_for("ord_1")).unwrap()
        assert [r.state for r in stored] == [ReservationState.RELEASED]

    async def test_insufficient_stock(self, sql_ledger):
        await sql_ledger.reserve(TEE_M, 4, "ord_1")

        result = await sql_ledger.reserve(TEE_M, 2, "ord_2")

        assert isinstance(result, Error)
        assert isinstance(result.error, InsufficientStock)
        assert result.error.shortages[0].available == 1
        assert await counters(sql_ledger, TEE_M) == (1, 4)

    async def test_unknown_variant(self, sql_ledger):
        result = await sql_ledger.reserve(VariantKey("ghost", "S"), 1, "ord_1")
        assert isinstance(result, Error)
        assert result.error.kind == LedgerErrorKind.NOT_FOUND

    async def test_concurrent_reserves_never_oversell(self, sql_ledger):
        results = await asyncio.gather(*(
            sql_ledger.reserve(TEE_M, 2, f"ord_{i}") for i in range(6)
        ))

        held = [r.value for r in results if isinstance(r, Ok)]
        refused = [r.error for r in results if isinstance(r, Error)]
        assert sum(r.quantity for r in held) == 4
        assert len(refused) == 4
        assert all(isinstance(err, InsufficientStock) for err in refused)
        assert await counters(sql_ledger, TEE_M) == (1, 4)
        stored = [
            r for i in range(6) for r in (await sql_ledger.reservations_for(f"ord_{i}")).unwrap()
        ]
        assert sorted(r.id for r in stored) == sorted(r.id for r in held)

    async def test_commit_order(self, sql_ledger):
        await sql_ledger.reserve(TEE_M, 1, "ord_1")
        committed = (await sql_ledger.commit_order("ord_1")).unwrap()

        assert [r.state for r in committed] == [ReservationState.COMMITTED]
        assert await counters(sql_ledger, TEE_M) == (4, 1)

    async def test_restock(self, sql_ledger):
        assert (await sql_ledger.restock(TEE_M, 2)).unwrap().qty == 7
