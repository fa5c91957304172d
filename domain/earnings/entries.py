"""
收益条目 - 将两种支付形态统一为同一种收益记录

一笔支付要么是单课程包直接购买（DirectSaleEarning），
要么是购物车订单，按订单项拆成多条 OrderItemEarning。
报表与历史同步只消费归一化后的 NormalizedEarning。

订单支付的教师收益以支付记录上的 teacher_earning 为准：
按各订单项在当前费率下的教师收益占比拆分，合计始终等于已记录的金额。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Mapping, Optional, Union

from domain.catalog.entity import PackageListing
from domain.common.exceptions import InvalidPaymentStateException
from domain.common.money import ONE, ZERO
from domain.order.entity import Order
from domain.payment.entity import Payment

from .commission import calculate_commission


@dataclass(frozen=True)
class DirectSaleEarning:
    """单课程包支付：教师收益已在支付记录上确定"""

    payment_id: int
    package_id: int
    gross: Decimal
    teacher_earning: Decimal
    paid_at: Optional[datetime]


@dataclass(frozen=True)
class OrderItemEarning:
    """订单中的一行：教师收益由支付记录按比例拆分"""

    payment_id: int
    order_id: int
    order_item_id: Optional[int]
    package_id: int
    final_price: Decimal
    paid_at: Optional[datetime]


EarningsEntry = Union[DirectSaleEarning, OrderItemEarning]


@dataclass(frozen=True)
class NormalizedEarning:
    teacher_profile_id: int
    course_id: int
    package_id: int
    gross: Decimal
    teacher_earning: Decimal
    paid_at: Optional[datetime]
    payment_id: int
    order_item_id: Optional[int] = None


def earnings_entries(payment: Payment, order: Optional[Order] = None) -> Iterator[EarningsEntry]:
    """拆分支付为收益条目；订单支付需要传入对应订单"""
    if payment.is_package_payment:
        yield DirectSaleEarning(
            payment_id=payment.id,
            package_id=payment.package_id,
            gross=payment.amount,
            teacher_earning=payment.teacher_earning,
            paid_at=payment.paid_at,
        )
        return
    if not payment.is_order_payment or order is None:
        raise InvalidPaymentStateException(payment.id or 0)
    for item in order.items:
        yield OrderItemEarning(
            payment_id=payment.id,
            order_id=order.id,
            order_item_id=item.id,
            package_id=item.package_id,
            final_price=item.final_price,
            paid_at=payment.paid_at,
        )


def normalize_entry(
    entry: EarningsEntry,
    *,
    listings: Mapping[int, PackageListing],
    default_rate: Decimal,
    scale: Decimal = ONE,
) -> Optional[NormalizedEarning]:
    """归一化单个条目；课程包或教师已不存在时返回 None"""
    listing = listings.get(entry.package_id)
    if listing is None or listing.teacher is None:
        return None

    if isinstance(entry, DirectSaleEarning):
        gross = entry.gross
        teacher_earning = entry.teacher_earning
        order_item_id = None
    else:
        split = calculate_commission(entry.final_price, listing.commission_rate, default_rate=default_rate)
        gross = entry.final_price
        teacher_earning = split.teacher_earning * scale
        order_item_id = entry.order_item_id

    return NormalizedEarning(
        teacher_profile_id=listing.teacher.id,
        course_id=listing.course.id,
        package_id=entry.package_id,
        gross=gross,
        teacher_earning=teacher_earning,
        paid_at=entry.paid_at,
        payment_id=entry.payment_id,
        order_item_id=order_item_id,
    )


def _recorded_scale(
    payment: Payment,
    entries: list[EarningsEntry],
    *,
    listings: Mapping[int, PackageListing],
    default_rate: Decimal,
) -> Decimal:
    """订单项按当前费率计算的收益合计与支付记录不一致时的缩放系数"""
    items = [e for e in entries if isinstance(e, OrderItemEarning)]
    if not items:
        return ONE
    current = ZERO
    for entry in items:
        listing = listings.get(entry.package_id)
        rate = listing.commission_rate if listing is not None else None
        current += calculate_commission(entry.final_price, rate, default_rate=default_rate).teacher_earning
    if current <= ZERO:
        return ONE
    return payment.teacher_earning / current


def normalize_earnings(
    payment: Payment,
    *,
    order: Optional[Order],
    listings: Mapping[int, PackageListing],
    default_rate: Decimal,
) -> list[NormalizedEarning]:
    entries = list(earnings_entries(payment, order))
    scale = _recorded_scale(payment, entries, listings=listings, default_rate=default_rate)
    normalized = []
    for entry in entries:
        item = normalize_entry(entry, listings=listings, default_rate=default_rate, scale=scale)
        if item is not None:
            normalized.append(item)
    return normalized
