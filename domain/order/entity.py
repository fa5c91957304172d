"""
订单与购物车领域实体

订单项是下单时刻的价格快照，创建后不可修改。
订单状态单向流转：PENDING -> PAID / CANCELLED，PAID -> REFUNDED。
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from domain.common.exceptions import InvalidStateTransitionException
from domain.common.money import ZERO
from domain.common.timeutil import ensure_utc, utcnow


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


def generate_order_no(now: Optional[datetime] = None) -> str:
    """生成订单号：ORD-YYYYMMDD-<毫秒时间戳>-<3位随机数>"""
    now = now or utcnow()
    stamp = int(now.timestamp() * 1000)
    suffix = random.randint(0, 999)
    return f"ORD-{now:%Y%m%d}-{stamp}-{suffix:03d}"


@dataclass(frozen=True)
class OrderItem:
    """订单项（价格快照）"""

    id: Optional[int]
    package_id: int
    price: Decimal
    discount: Decimal
    final_price: Decimal
    order_id: Optional[int] = None


@dataclass
class Order:
    id: Optional[int]
    order_no: str
    user_id: int
    total_amount: Decimal
    status: OrderStatus = OrderStatus.PENDING
    items: List[OrderItem] = field(default_factory=list)
    paid_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.paid_at = ensure_utc(self.paid_at)
        self.canceled_at = ensure_utc(self.canceled_at)
        self.refunded_at = ensure_utc(self.refunded_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @classmethod
    def from_items(cls, user_id: int, items: List[OrderItem]) -> "Order":
        """根据快照项创建待支付订单，总额为各项成交价之和"""
        total = sum((item.final_price for item in items), ZERO)
        return cls(
            id=None,
            order_no=generate_order_no(),
            user_id=user_id,
            total_amount=total,
            items=list(items),
        )

    @property
    def items_total(self) -> Decimal:
        return sum((item.final_price for item in self.items), ZERO)

    @property
    def package_ids(self) -> List[int]:
        return [item.package_id for item in self.items]

    def _transition(self, allowed_from: OrderStatus, target: OrderStatus) -> None:
        if self.status != allowed_from:
            raise InvalidStateTransitionException("order", self.status.value, target.value)
        self.status = target
        self.updated_at = utcnow()

    def mark_paid(self, paid_at: Optional[datetime] = None) -> None:
        self._transition(OrderStatus.PENDING, OrderStatus.PAID)
        self.paid_at = ensure_utc(paid_at) or self.updated_at

    def cancel(self, reason: Optional[str] = None) -> None:
        self._transition(OrderStatus.PENDING, OrderStatus.CANCELLED)
        self.canceled_at = self.updated_at
        self.cancel_reason = reason

    def mark_refunded(self, amount: Decimal) -> None:
        self._transition(OrderStatus.PAID, OrderStatus.REFUNDED)
        self.refunded_at = self.updated_at
        self.refund_amount = amount


@dataclass
class CartItem:
    """购物车行；同一课程包重复加入不会增加数量"""

    id: Optional[int]
    user_id: int
    package_id: int
    quantity: int = 1
    added_at: Optional[datetime] = None
