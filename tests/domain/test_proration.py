from decimal import Decimal

from domain.earnings.proration import prorate_refund, proration_base
from domain.order.entity import OrderItem


def _item(item_id, package_id, final_price):
    price = Decimal(final_price)
    return OrderItem(id=item_id, package_id=package_id, price=price, discount=Decimal("0"), final_price=price)


def test_refund_split_by_final_price():
    items = [_item(1, 10, "100"), _item(2, 20, "50")]
    shares = prorate_refund(items, Decimal("75"), rates={10: Decimal("10"), 20: Decimal("0")})
    assert [s.share for s in shares] == [Decimal("50"), Decimal("25")]
    assert shares[0].teacher_net == Decimal("45")
    assert shares[1].teacher_net == Decimal("25")


def test_shares_sum_to_refund_amount():
    items = [_item(1, 10, "33.33"), _item(2, 20, "66.67")]
    shares = prorate_refund(items, Decimal("100"))
    assert sum(s.share for s in shares) == Decimal("100")


def test_unknown_rate_leaves_teacher_net_empty():
    shares = prorate_refund([_item(1, 10, "10")], Decimal("10"))
    assert shares[0].teacher_net is None


def test_base_falls_back_to_order_total_then_one():
    zero_items = [_item(1, 10, "0")]
    assert proration_base(zero_items, Decimal("40")) == Decimal("40")
    assert proration_base(zero_items, Decimal("0")) == Decimal("1")
    shares = prorate_refund(zero_items, Decimal("5"), fallback_total=Decimal("0"))
    assert shares[0].share == Decimal("0")
