"""Pytest fixtures for settle tests."""

import logging
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from settle._types import VariantKey, money
from settle.cart import Cart, CartLine
from settle.config import Settings
from settle.coupon import Coupon, CouponEvaluator, CouponKind, MemoryCouponBook
from settle.gateway import GatewayOrder
from settle.inventory import InventoryLedger, MemoryLedgerStore, Variant
from settle.orders import MemoryOrderStore, OrderManager, ShippingAddress

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)

TEE_M = VariantKey("tee", "M")
TEE_L = VariantKey("tee", "L")
CAP = VariantKey("cap", "OS")

WEBHOOK_SECRET = "whsec_test"
KEY_SECRET = "key_test"

ADDRESS = ShippingAddress(
    first_name="Asha",
    last_name="Rao",
    phone_number="+919800000000",
    address1="12 MG Road",
    city="Bengaluru",
    state="KA",
    zip_code="560001",
    country="IN",
)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeGateway:
    """Records create_order calls; raises when `fail` is set."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.created: list[tuple[GatewayOrder, dict[str, str]]] = []

    async def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> GatewayOrder:
        if self.fail:
            raise ConnectionError("gateway unreachable")
        order = GatewayOrder(f"order_G{len(self.created) + 1}", amount_minor, currency, receipt)
        self.created.append((order, notes))
        return order


def make_line(
    key: VariantKey = TEE_M,
    quantity: int = 1,
    price: str = "10",
    name: str = "Tee",
) -> CartLine:
    return CartLine(
        product_id=key.product_id,
        name=name,
        size=key.size,
        quantity=quantity,
        unit_price=money(price),
    )


def make_cart(*lines: CartLine, user_id: str = "user_1") -> Cart:
    return Cart(user_id, tuple(lines))


COUPONS = (
    Coupon("SAVE10", date(2026, 1, 1), date(2026, 12, 31), Decimal(10)),
    Coupon("OLD", date(2025, 1, 1), date(2025, 12, 31), Decimal(20)),
    Coupon("LATER", date(2026, 6, 1), date(2026, 6, 30), Decimal(15)),
    Coupon(
        "FLAT50",
        date(2026, 1, 1),
        date(2026, 12, 31),
        Decimal(50),
        kind=CouponKind.FIXED,
        minimum_order_value=money(100),
    ),
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def ledger(clock: FakeClock) -> InventoryLedger:
    ledger = InventoryLedger(MemoryLedgerStore(), clock=clock)
    await ledger.add_variant(Variant(TEE_M, qty=5, sold=0, price=money(10)))
    await ledger.add_variant(Variant(TEE_L, qty=2, sold=0, price=money(10)))
    await ledger.add_variant(Variant(CAP, qty=10, sold=3, price=money(25)))
    return ledger


@pytest.fixture
def coupon_book() -> MemoryCouponBook:
    return MemoryCouponBook(COUPONS)


@pytest.fixture
def coupons(coupon_book: MemoryCouponBook) -> CouponEvaluator:
    return CouponEvaluator(coupon_book)


@pytest.fixture
def manager(ledger: InventoryLedger, clock: FakeClock) -> OrderManager:
    return OrderManager(
        MemoryOrderStore(),
        ledger,
        clock=clock,
        pending_ttl=timedelta(minutes=30),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings().with_secrets(key_secret=KEY_SECRET, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path}/settle.db"


@pytest.fixture(autouse=True)
def settle_logger():
    """Put the `settle` logger back the way the test found it."""
    logger = logging.getLogger("settle")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)
