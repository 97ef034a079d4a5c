"""Unit tests for the order transition table and shipping calculation."""

import re
from decimal import Decimal

import pytest
from services.orders_service.models import Order, OrderStatus, shipping_amount
from services.orders_service.state_machine import (
    SELLER_TRANSITIONS,
    TERMINAL_STATUSES,
    allowed_predecessors,
    can_transition,
)

S = OrderStatus


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        (S.PENDING, S.PROCESSING),
        (S.PAID, S.PROCESSING),
        (S.PROCESSING, S.SHIPPED),
        (S.SHIPPED, S.DELIVERED),
        (S.PENDING, S.CANCELED),
        (S.PAID, S.CANCELED),
        (S.PROCESSING, S.CANCELED),
        (S.SHIPPED, S.CANCELED),
    ],
)
def test_allowed_seller_transitions(current, target):
    assert can_transition(current, target)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        (S.DELIVERED, S.SHIPPED),
        (S.CANCELED, S.SHIPPED),
        (S.CANCELED, S.PROCESSING),
        (S.PENDING, S.SHIPPED),
        (S.PENDING, S.DELIVERED),
        (S.SHIPPED, S.PROCESSING),
        (S.PENDING, S.PAID),
        (S.PROCESSING, S.PAID),
    ],
)
def test_rejected_seller_transitions(current, target):
    assert not can_transition(current, target)


@pytest.mark.unit
def test_terminal_statuses_have_no_exits():
    for status in TERMINAL_STATUSES:
        assert SELLER_TRANSITIONS[status] == frozenset()
        assert all(not can_transition(status, target) for target in OrderStatus)


@pytest.mark.unit
def test_paid_is_never_a_seller_target():
    assert allowed_predecessors(S.PAID) == frozenset()


@pytest.mark.unit
def test_cancel_reachable_from_every_open_status():
    assert allowed_predecessors(S.CANCELED) == {
        S.PENDING,
        S.PAID,
        S.PROCESSING,
        S.SHIPPED,
    }


@pytest.mark.unit
def test_shipping_is_total_minus_items():
    assert shipping_amount(Decimal("1500.00"), Decimal("1450.00")) == Decimal("50.00")


@pytest.mark.unit
def test_shipping_is_floored_at_zero():
    assert shipping_amount(Decimal("100.00"), Decimal("120.00")) == Decimal("0.00")


@pytest.mark.unit
def test_order_numbers_are_unique_and_well_formed():
    numbers = {Order.generate_order_number() for _ in range(500)}
    assert len(numbers) == 500
    assert all(re.fullmatch(r"ORD-\d{8}-[A-Z0-9]{8}", n) for n in numbers)
