import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.common.exceptions import InvalidStateTransitionException
from domain.order.entity import Order, OrderItem, OrderStatus, generate_order_no


def _items():
    return [
        OrderItem(id=None, package_id=1, price=Decimal("120"), discount=Decimal("20"), final_price=Decimal("100")),
        OrderItem(id=None, package_id=2, price=Decimal("50"), discount=Decimal("0"), final_price=Decimal("50")),
    ]


def test_order_number_format():
    now = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    assert re.fullmatch(r"ORD-20260304-\d{13}-\d{3}", generate_order_no(now))


def test_total_is_sum_of_final_prices():
    order = Order.from_items(7, _items())
    assert order.total_amount == Decimal("150")
    assert order.items_total == Decimal("150")
    assert order.package_ids == [1, 2]
    assert order.status == OrderStatus.PENDING


def test_paid_then_refunded():
    order = Order.from_items(7, _items())
    order.mark_paid()
    assert order.paid_at is not None
    order.mark_refunded(Decimal("30"))
    assert order.status == OrderStatus.REFUNDED
    assert order.refund_amount == Decimal("30")


def test_transitions_are_one_directional():
    order = Order.from_items(7, _items())
    order.cancel("changed my mind")
    assert order.cancel_reason == "changed my mind"
    with pytest.raises(InvalidStateTransitionException):
        order.mark_paid()
    with pytest.raises(InvalidStateTransitionException):
        Order.from_items(7, _items()).mark_refunded(Decimal("1"))
