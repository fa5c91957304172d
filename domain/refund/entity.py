"""
退款领域实体 - 退款审批状态机

PENDING --approve--> APPROVED --processing--> PROCESSING --complete--> COMPLETED
PENDING --reject--> REJECTED
APPROVED --complete--> COMPLETED

REJECTED 与 COMPLETED 为终态。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException, InvalidStateTransitionException
from domain.common.money import ZERO
from domain.common.timeutil import ensure_utc, utcnow


class RefundStatus(str, Enum):
    """退款状态枚举"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"


class RefundMethod(str, Enum):
    ORIGINAL_PAYMENT = "ORIGINAL_PAYMENT"
    WALLET = "WALLET"
    BANK_TRANSFER = "BANK_TRANSFER"


_TRANSITIONS: dict[RefundStatus, frozenset[RefundStatus]] = {
    RefundStatus.PENDING: frozenset({RefundStatus.APPROVED, RefundStatus.REJECTED}),
    RefundStatus.APPROVED: frozenset({RefundStatus.PROCESSING, RefundStatus.COMPLETED}),
    RefundStatus.PROCESSING: frozenset({RefundStatus.COMPLETED}),
    RefundStatus.REJECTED: frozenset(),
    RefundStatus.COMPLETED: frozenset(),
}

# 占用订单的退款状态：同一订单同时只能有一笔
OPEN_STATUSES = (RefundStatus.PENDING, RefundStatus.PROCESSING)


@dataclass
class Refund:
    """
    退款申请

    业务规则：
    1. 0 < 金额 <= 订单总额（由申请流程校验订单）
    2. 状态只能按状态机流转
    3. 驳回必须填写原因
    """

    id: Optional[int]
    order_id: int
    user_id: int
    amount: Decimal
    reason: str
    status: RefundStatus = RefundStatus.PENDING
    reason_category: Optional[str] = None
    refund_method: RefundMethod = RefundMethod.ORIGINAL_PAYMENT
    bank_details: Optional[dict] = None
    notes: Optional[str] = None
    provider_refund_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount <= ZERO:
            raise DomainValidationException(
                f"退款金额必须大于0: {self.amount}",
                field="amount",
            )
        self.processed_at = ensure_utc(self.processed_at)
        self.completed_at = ensure_utc(self.completed_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def can_transition_to(self, target: RefundStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def _transition(self, target: RefundStatus, notes: Optional[str]) -> None:
        if not self.can_transition_to(target):
            raise InvalidStateTransitionException("refund", self.status.value, target.value)
        self.status = target
        self.updated_at = utcnow()
        if notes and notes.strip():
            self.notes = notes.strip()

    def approve(self, admin_notes: Optional[str] = None) -> None:
        self._transition(RefundStatus.APPROVED, admin_notes)
        self.processed_at = self.updated_at

    def reject(self, reason: str) -> None:
        if not reason or not reason.strip():
            raise DomainValidationException("驳回原因不能为空", field="reason")
        self._transition(RefundStatus.REJECTED, reason)
        self.processed_at = self.updated_at

    def mark_processing(self, admin_notes: Optional[str] = None) -> None:
        self._transition(RefundStatus.PROCESSING, admin_notes)

    def complete(self, admin_notes: Optional[str] = None, provider_refund_id: Optional[str] = None) -> None:
        self._transition(RefundStatus.COMPLETED, admin_notes)
        self.completed_at = self.updated_at
        if provider_refund_id:
            self.provider_refund_id = provider_refund_id
