"""Tests for the FastAPI routes."""

import json
import logging

import pytest
from fastapi.testclient import TestClient
from kungfu import Error

from conftest import COUPONS, KEY_SECRET, TEE_L, TEE_M, WEBHOOK_SECRET, FakeClock, FakeGateway
from settle._types import StoreError, money
from settle.api import GENERIC_FAILURE, create_app, error_response
from settle.engine import build_engine, memory_engine
from settle.gateway import payment_signature_message, sign
from settle.inventory import MemoryLedgerStore, Variant
from settle.orders import MemoryOrderStore

ADDRESS_JSON = {
    "first_name": "Asha",
    "last_name": "Rao",
    "phone_number": "+919800000000",
    "address1": "12 MG Road",
    "city": "Bengaluru",
    "state": "KA",
    "zip_code": "560001",
    "country": "IN",
}


def line_json(size: str = "M", quantity: int = 2, unit_price: str = "10") -> dict:
    return {
        "product_id": "tee",
        "name": "Tee",
        "size": size,
        "quantity": quantity,
        "unit_price": unit_price,
    }


def checkout_json(*lines: dict, coupon_code: str | None = None) -> dict:
    return {
        "user_id": "user_1",
        "lines": list(lines),
        "shipping_address": ADDRESS_JSON,
        "coupon_code": coupon_code,
    }


class BrokenCouponBook:
    async def find(self, code: str):
        return Error(StoreError("database is locked"))

    async def all(self):
        return Error(StoreError("database is locked"))

    async def put(self, coupon):
        return Error(StoreError("database is locked"))


@pytest.fixture
def engine(settings):
    return memory_engine(settings, gateway=FakeGateway(), clock=FakeClock())


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine)) as client:
        client.portal.call(engine.ledger.add_variant, Variant(TEE_M, qty=5, sold=0, price=money(10)))
        client.portal.call(engine.ledger.add_variant, Variant(TEE_L, qty=1, sold=0, price=money(10)))
        for coupon in COUPONS:
            client.portal.call(engine.coupon_book.put, coupon)
        yield client


def place(client, **kwargs) -> dict:
    response = client.post("/checkout", json=checkout_json(line_json(), **kwargs))
    assert response.status_code == 201
    return response.json()


class TestCheckout:
    def test_created(self, client):
        body = place(client, coupon_code="save10")

        order = body["order"]
        assert order["status"] == "pending"
        assert order["is_paid"] is False
        assert order["total"] == "18.00"
        assert order["total_saved"] == "2.00"
        assert order["coupon_applied"] == "SAVE10"
        assert body["gateway_order_id"] == "order_G1"
        assert body["amount_minor"] == 1800
        assert body["coupon_dropped"] is None

    def test_insufficient_stock(self, client):
        response = client.post("/checkout", json=checkout_json(line_json("M", 2), line_json("L", 3)))

        assert response.status_code == 422
        body = response.json()
        assert body["error_type"] == "InsufficientStock"
        assert body["shortages"] == [
            {"product_id": "tee", "size": "L", "requested": 3, "available": 1},
        ]

    def test_empty_cart(self, client):
        response = client.post("/checkout", json=checkout_json())

        assert response.status_code == 422
        assert response.json() == {"detail": "your cart is empty", "error_type": "EmptyCart"}

    def test_expired_coupon(self, client):
        response = client.post("/checkout", json=checkout_json(line_json(), coupon_code="OLD"))

        assert response.status_code == 422
        assert response.json()["error_type"] == "CouponError"

    def test_zero_quantity_rejected_by_validation(self, client):
        response = client.post("/checkout", json=checkout_json(line_json(quantity=0)))
        assert response.status_code == 422


class TestOrders:
    def test_get(self, client):
        placed = place(client)

        response = client.get(f"/orders/{placed['order']['id']}")

        assert response.status_code == 200
        assert response.json()["gateway_order_id"] == "order_G1"
        assert response.json()["lines"][0]["line_total"] == "20.00"

    def test_not_found(self, client):
        response = client.get("/orders/ord_missing")

        assert response.status_code == 404
        assert response.json()["error_type"] == "OrderNotFound"

    def test_cancel(self, client):
        order_id = place(client)["order"]["id"]

        response = client.post(f"/orders/{order_id}/cancel")
        again = client.post(f"/orders/{order_id}/cancel")

        assert response.json()["status"] == "cancelled"
        assert again.status_code == 409
        assert again.json()["error_type"] == "InvalidTransition"

    def test_deliver_requires_payment(self, client):
        order_id = place(client)["order"]["id"]

        response = client.post(f"/orders/{order_id}/deliver")

        assert response.status_code == 409


class TestPayments:
    def test_verify_then_deliver(self, client):
        order_id = place(client)["order"]["id"]
        signature = sign(KEY_SECRET, payment_signature_message("order_G1", "pay_1"))

        verified = client.post("/payments/verify", json={
            "order_id": order_id,
            "razorpay_order_id": "order_G1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": signature,
        })
        delivered = client.post(f"/orders/{order_id}/deliver")

        assert verified.status_code == 200
        assert verified.json()["status"] == "paid"
        assert verified.json()["is_paid"] is True
        assert delivered.json()["status"] == "delivered"

    def test_forged_verify(self, client):
        order_id = place(client)["order"]["id"]

        response = client.post("/payments/verify", json={
            "order_id": order_id,
            "razorpay_order_id": "order_G1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "0" * 64,
        })

        assert response.status_code == 400
        assert response.json()["error_type"] == "GatewayError"

    def test_webhook(self, client):
        order_id = place(client)["order"]["id"]
        body = json.dumps({
            "event": "payment.captured",
            "payload": {"payment": {"entity": {
                "id": "pay_1",
                "order_id": "order_G1",
                "notes": {"order_id": order_id},
            }}},
        }).encode()

        response = client.post(
            "/webhooks/razorpay",
            content=body,
            headers={"X-Razorpay-Signature": sign(WEBHOOK_SECRET, body)},
        )

        assert response.status_code == 200
        assert response.json() == {
            "event": "payment.captured",
            "order_id": order_id,
            "applied": True,
            "note": "",
        }
        assert client.get(f"/orders/{order_id}").json()["status"] == "paid"

    def test_webhook_without_signature(self, client):
        response = client.post("/webhooks/razorpay", content=b'{"event": "payment.captured"}')
        assert response.status_code == 400


class TestCoupons:
    def test_available(self, client):
        response = client.get("/coupons")

        assert response.status_code == 200
        assert [c["code"] for c in response.json()] == ["FLAT50", "SAVE10"]
        assert response.json()[0]["minimum_order_value"] == "100.00"

    def test_store_failure_is_generic(self, settings):
        engine = build_engine(
            settings,
            ledger_store=MemoryLedgerStore(),
            order_store=MemoryOrderStore(),
            coupon_book=BrokenCouponBook(),
            clock=FakeClock(),
        )

        with TestClient(create_app(engine)) as client:
            response = client.get("/coupons")

        assert response.status_code == 500
        assert response.json() == {"detail": GENERIC_FAILURE, "error_type": "InternalError"}


class TestErrorResponse:
    def test_unmapped_error_hides_detail(self):
        response = error_response(StoreError("password=hunter2"))

        assert response.status_code == 500
        assert b"hunter2" not in response.body


class TestAppLogging:
    def test_log_level_from_settings(self, settings, settle_logger):
        create_app(memory_engine(settings.with_log_level("DEBUG"), gateway=FakeGateway(), clock=FakeClock()))

        assert settle_logger.level == logging.DEBUG
        assert settle_logger.handlers
