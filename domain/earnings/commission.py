"""
佣金计算 - 纯函数

platform_commission = amount * rate / 100
teacher_earning     = amount - platform_commission

不做舍入：Decimal 运算保持 19.999 / 179.991 这样的精度，
舍入只发生在网关金额换算（最小货币单位）时。
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from domain.common.money import HUNDRED, ZERO, as_decimal


@dataclass(frozen=True)
class CommissionSplit:
    amount: Decimal
    rate: Decimal
    platform_commission: Decimal
    teacher_earning: Decimal


def resolve_rate(rate: Optional[Decimal], default_rate: Decimal) -> Decimal:
    """教师费率优先，缺省使用平台默认费率；结果限制在 [0, 100]"""
    value = as_decimal(default_rate if rate is None else rate)
    if value < ZERO:
        return ZERO
    if value > HUNDRED:
        return HUNDRED
    return value


def calculate_commission(
    amount: Decimal,
    rate: Optional[Decimal] = None,
    *,
    default_rate: Decimal,
) -> CommissionSplit:
    amount = as_decimal(amount)
    effective = resolve_rate(rate, default_rate)
    platform_commission = amount * effective / HUNDRED
    return CommissionSplit(
        amount=amount,
        rate=effective,
        platform_commission=platform_commission,
        teacher_earning=amount - platform_commission,
    )


def aggregate_commission(
    lines: Iterable[Tuple[Decimal, Optional[Decimal]]],
    *,
    default_rate: Decimal,
) -> CommissionSplit:
    """按行（金额, 教师费率）分别计算后汇总；rate 为等效费率"""
    amount = ZERO
    platform_commission = ZERO
    for line_amount, line_rate in lines:
        split = calculate_commission(line_amount, line_rate, default_rate=default_rate)
        amount += split.amount
        platform_commission += split.platform_commission
    rate = platform_commission * HUNDRED / amount if amount else resolve_rate(None, default_rate)
    return CommissionSplit(
        amount=amount,
        rate=rate,
        platform_commission=platform_commission,
        teacher_earning=amount - platform_commission,
    )
