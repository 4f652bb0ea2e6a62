"""Tests for order status parsing and pure transitions."""

from dataclasses import replace
from decimal import Decimal

import pytest
from kungfu import Error, Ok

from conftest import ADDRESS, NOW, TEE_M, make_line
from settle._types import money
from settle.orders import (
    ALLOWED_FROM,
    InvalidTransition,
    Order,
    OrderStatus,
    RefundDetails,
    Transition,
    UnknownStatus,
    parse_status,
)
from settle.orders import _machine as M
from settle.pricing import price

REFUND = RefundDetails("rfnd_1", money(20), "processed")


def pending_order() -> Order:
    return Order(
        id="ord_1",
        user_id="user_1",
        lines=(make_line(TEE_M, 2),),
        shipping_address=ADDRESS,
        payment_method="razorpay",
        pricing=price([make_line(TEE_M, 2)]).unwrap(),
        currency="INR",
        status=OrderStatus.PENDING,
        created_at=NOW,
    )


def paid(order: Order) -> Order:
    return M.confirm_payment(
        order,
        gateway_order_id="order_G1",
        gateway_payment_id="pay_1",
        payment_details=None,
        now=NOW,
    ).unwrap()


class TestParseStatus:
    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_canonical_labels(self, status):
        assert parse_status(status.value) == Ok(status)

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Paid", OrderStatus.PAID),
            ("  DELIVERED ", OrderStatus.DELIVERED),
            ("Not Processed", OrderStatus.PENDING),
            ("Processing", OrderStatus.PAID),
            ("Dispatched", OrderStatus.PAID),
            ("In Transit", OrderStatus.PAID),
            ("Completed", OrderStatus.DELIVERED),
        ],
    )
    def test_labels_are_normalised(self, raw, expected):
        assert parse_status(raw) == Ok(expected)

    def test_unknown_label_rejected(self):
        result = parse_status("lost in space")
        assert result == Error(UnknownStatus("lost in space"))


class TestStatus:
    @pytest.mark.parametrize(
        ("status", "is_paid"),
        [
            (OrderStatus.PENDING, False),
            (OrderStatus.PAID, True),
            (OrderStatus.DELIVERED, True),
            (OrderStatus.REFUNDED, False),
            (OrderStatus.CANCELLED, False),
        ],
    )
    def test_is_paid(self, status, is_paid):
        assert status.is_paid is is_paid


class TestTransitions:
    def test_confirm_payment_sets_paid_fields(self):
        order = paid(pending_order())

        assert order.status == OrderStatus.PAID
        assert order.is_paid
        assert order.paid_at == NOW
        assert order.gateway_payment_id == "pay_1"

    def test_pending_cannot_skip_to_delivered(self):
        order = pending_order()

        result = M.mark_delivered(order, now=NOW)

        assert result == Error(InvalidTransition("ord_1", OrderStatus.PENDING, "mark_delivered"))
        assert order.status == OrderStatus.PENDING

    def test_pending_cannot_be_refunded(self):
        result = M.refund(pending_order(), refund_details=REFUND, now=NOW)
        assert isinstance(result, Error)
        assert result.error.message == "cannot refund order ord_1 in state pending"

    def test_refunded_cannot_be_paid(self):
        refunded = M.refund(paid(pending_order()), refund_details=REFUND, now=NOW).unwrap()

        result = M.confirm_payment(
            refunded,
            gateway_order_id="order_G1",
            gateway_payment_id="pay_2",
            payment_details=None,
            now=NOW,
        )

        assert isinstance(result, Error)
        assert result.error.from_status == OrderStatus.REFUNDED

    def test_delivered_can_be_refunded(self):
        delivered = M.mark_delivered(paid(pending_order()), now=NOW).unwrap()
        refunded = M.refund(delivered, refund_details=REFUND, now=NOW).unwrap()

        assert refunded.status == OrderStatus.REFUNDED
        assert refunded.refund_details == REFUND
        assert refunded.delivered_at == NOW

    def test_paid_cannot_be_cancelled(self):
        assert isinstance(M.cancel(paid(pending_order()), now=NOW), Error)

    def test_lines_and_pricing_never_move(self):
        order = pending_order()
        delivered = M.mark_delivered(paid(order), now=NOW).unwrap()

        assert delivered.lines == order.lines
        assert delivered.pricing == order.pricing

    @pytest.mark.parametrize("transition", list(Transition))
    def test_terminal_states_accept_nothing(self, transition):
        for status in (OrderStatus.REFUNDED, OrderStatus.CANCELLED):
            assert status not in ALLOWED_FROM[transition]
            order = replace(pending_order(), status=status)
            assert isinstance(M.check(order, transition), Error)

    def test_order_totals_delegate_to_pricing(self):
        order = pending_order()
        assert order.total == money(20)
        assert order.total_before_discount == Decimal("20.00")
        assert order.coupon_applied is None
