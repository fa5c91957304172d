"""金额工具 - 统一 Decimal 转换与最小货币单位换算"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

# 零位小数货币
_ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW"}


def as_decimal(value: Any) -> Decimal:
    """将 Numeric/float/str/None 安全转换为 Decimal（None 视为 0）"""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_minor_units(amount: Decimal, currency: str = "USD") -> int:
    """转换为最小货币单位（如美分），四舍五入"""
    exponent = 0 if currency.upper() in _ZERO_DECIMAL_CURRENCIES else 2
    scaled = as_decimal(amount) * (Decimal(10) ** exponent)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
