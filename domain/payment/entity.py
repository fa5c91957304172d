"""
支付领域实体 - 支付聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import (
    DomainValidationException,
    InvalidPaymentStateException,
    InvalidStateTransitionException,
)
from domain.common.money import ZERO, to_minor_units
from domain.common.timeutil import ensure_utc, utcnow


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "PENDING"       # 待支付
    COMPLETED = "COMPLETED"   # 已完成
    REFUNDED = "REFUNDED"     # 已退款


@dataclass
class Payment:
    """
    支付聚合根

    业务规则：
    1. 支付只能指向一个课程包或一个订单（二选一）
    2. 金额必须大于0，佣金 + 教师收益 = 金额
    3. PENDING -> COMPLETED -> REFUNDED 单向流转
    """

    id: Optional[int]
    user_id: int
    amount: Decimal
    platform_commission: Decimal
    teacher_earning: Decimal
    status: PaymentStatus = PaymentStatus.PENDING
    package_id: Optional[int] = None
    order_id: Optional[int] = None
    currency: str = "USD"
    provider_ref: Optional[str] = None  # 网关收款凭证ID
    client_secret: Optional[str] = None  # 前端调用凭证
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount is not None and self.amount < ZERO:
            raise DomainValidationException(
                f"支付金额不能为负: {self.amount}",
                field="amount",
            )
        self.paid_at = ensure_utc(self.paid_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @classmethod
    def for_package(
        cls,
        *,
        user_id: int,
        package_id: int,
        amount: Decimal,
        platform_commission: Decimal,
        teacher_earning: Decimal,
        currency: str = "USD",
    ) -> "Payment":
        return cls(
            id=None,
            user_id=user_id,
            package_id=package_id,
            amount=amount,
            platform_commission=platform_commission,
            teacher_earning=teacher_earning,
            currency=currency,
        )

    @classmethod
    def for_order(
        cls,
        *,
        user_id: int,
        order_id: int,
        amount: Decimal,
        platform_commission: Decimal,
        teacher_earning: Decimal,
        currency: str = "USD",
    ) -> "Payment":
        return cls(
            id=None,
            user_id=user_id,
            order_id=order_id,
            amount=amount,
            platform_commission=platform_commission,
            teacher_earning=teacher_earning,
            currency=currency,
        )

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    @property
    def is_package_payment(self) -> bool:
        return self.package_id is not None and self.order_id is None

    @property
    def is_order_payment(self) -> bool:
        return self.order_id is not None and self.package_id is None

    @property
    def amount_minor(self) -> int:
        """金额的最小货币单位表示（网关金额比对用）"""
        return to_minor_units(self.amount, self.currency)

    def ensure_scope(self) -> None:
        """业务规则：必须且只能指向课程包或订单之一"""
        if not (self.is_package_payment or self.is_order_payment):
            raise InvalidPaymentStateException(self.id or 0)

    def attach_charge(self, provider_ref: str, client_secret: Optional[str]) -> None:
        self.provider_ref = provider_ref
        self.client_secret = client_secret
        self.updated_at = utcnow()

    def mark_completed(self, paid_at: Optional[datetime] = None) -> None:
        if self.status != PaymentStatus.PENDING:
            raise InvalidStateTransitionException(
                "payment", self.status.value, PaymentStatus.COMPLETED.value
            )
        self.status = PaymentStatus.COMPLETED
        self.paid_at = ensure_utc(paid_at) or utcnow()
        self.updated_at = self.paid_at

    def mark_refunded(self) -> None:
        if self.status != PaymentStatus.COMPLETED:
            raise InvalidStateTransitionException(
                "payment", self.status.value, PaymentStatus.REFUNDED.value
            )
        self.status = PaymentStatus.REFUNDED
        self.updated_at = utcnow()
