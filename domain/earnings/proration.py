"""
退款分摊 - 将订单级退款金额按订单项成交价比例分摊到各教师
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from domain.common.money import HUNDRED, ONE, ZERO, as_decimal
from domain.order.entity import OrderItem


@dataclass(frozen=True)
class ProratedShare:
    order_item_id: Optional[int]
    package_id: int
    share: Decimal           # 该订单项分摊到的退款金额
    teacher_net: Optional[Decimal]  # 扣除平台佣金后教师应承担部分；无费率时为 None


def proration_base(items: Sequence[OrderItem], fallback_total: Decimal) -> Decimal:
    """分摊基数：订单项合计，其次订单总额，都为0时取1"""
    items_total = sum((as_decimal(item.final_price) for item in items), ZERO)
    if items_total > ZERO:
        return items_total
    fallback = as_decimal(fallback_total)
    if fallback > ZERO:
        return fallback
    return ONE


def prorate_refund(
    items: Sequence[OrderItem],
    refund_amount: Decimal,
    *,
    fallback_total: Decimal = ZERO,
    rates: Optional[Mapping[int, Decimal]] = None,
) -> list[ProratedShare]:
    """
    share       = (item.final_price / base) * refund_amount
    teacher_net = share * (1 - rate / 100)

    rates 以 package_id 为键，值为已解析的有效费率。
    """
    base = proration_base(items, fallback_total)
    refund_amount = as_decimal(refund_amount)
    rates = rates or {}
    shares = []
    for item in items:
        share = as_decimal(item.final_price) * refund_amount / base
        rate = rates.get(item.package_id)
        teacher_net = share * (ONE - rate / HUNDRED) if rate is not None else None
        shares.append(
            ProratedShare(
                order_item_id=item.id,
                package_id=item.package_id,
                share=share,
                teacher_net=teacher_net,
            )
        )
    return shares
