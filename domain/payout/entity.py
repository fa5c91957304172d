"""
提现领域实体 - 提现方式与提现申请

提现申请状态机：
PENDING --approve--> APPROVED
PENDING / APPROVED --processing--> PROCESSING
APPROVED / PROCESSING --paid--> PAID
PENDING / APPROVED / PROCESSING --reject--> REJECTED

PAID 与 REJECTED 为终态。申请时金额从可用余额冻结到待提现，
驳回时退回可用余额，打款后从待提现中结清。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException, InvalidStateTransitionException
from domain.common.money import ZERO
from domain.common.timeutil import ensure_utc, utcnow


class PayoutMethodType(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    GRABPAY = "GRABPAY"
    TOUCH_N_GO = "TOUCH_N_GO"
    PAYPAL = "PAYPAL"
    OTHER = "OTHER"


class PayoutStatus(str, Enum):
    """提现申请状态"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PROCESSING = "PROCESSING"
    REJECTED = "REJECTED"
    PAID = "PAID"


_TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.APPROVED, PayoutStatus.PROCESSING, PayoutStatus.REJECTED}),
    PayoutStatus.APPROVED: frozenset({PayoutStatus.PROCESSING, PayoutStatus.PAID, PayoutStatus.REJECTED}),
    PayoutStatus.PROCESSING: frozenset({PayoutStatus.PAID, PayoutStatus.REJECTED}),
    PayoutStatus.REJECTED: frozenset(),
    PayoutStatus.PAID: frozenset(),
}


@dataclass
class PayoutMethod:
    """教师的收款方式，同一钱包最多一个默认方式"""

    id: Optional[int]
    wallet_id: int
    type: PayoutMethodType
    label: str
    details: dict[str, Any] = field(default_factory=dict)
    is_default: bool = False
    is_verified: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.label = (self.label or "").strip()
        if not self.label:
            raise DomainValidationException("收款方式名称不能为空", field="label")
        if self.details is None:
            self.details = {}
        self.created_at = ensure_utc(self.created_at)


@dataclass
class PayoutRequest:
    """
    提现申请

    业务规则：
    1. 金额必须大于0，且不超过申请时的可用余额（由钱包账本校验）
    2. 状态只能按状态机流转
    """

    id: Optional[int]
    wallet_id: int
    amount: Decimal
    method_id: Optional[int] = None
    status: PayoutStatus = PayoutStatus.PENDING
    note: Optional[str] = None
    admin_note: Optional[str] = None
    external_reference: Optional[str] = None
    requested_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount <= ZERO:
            raise DomainValidationException(
                f"提现金额必须大于0: {self.amount}",
                field="amount",
            )
        self.requested_at = ensure_utc(self.requested_at)
        self.processed_at = ensure_utc(self.processed_at)

    def can_transition_to(self, target: PayoutStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def _transition(self, target: PayoutStatus, admin_note: Optional[str]) -> None:
        if not self.can_transition_to(target):
            raise InvalidStateTransitionException("payout", self.status.value, target.value)
        self.status = target
        if admin_note and admin_note.strip():
            self.admin_note = admin_note.strip()

    def approve(self, admin_note: Optional[str] = None) -> None:
        self._transition(PayoutStatus.APPROVED, admin_note)

    def mark_processing(self, admin_note: Optional[str] = None) -> None:
        self._transition(PayoutStatus.PROCESSING, admin_note)

    def reject(self, admin_note: Optional[str] = None) -> None:
        self._transition(PayoutStatus.REJECTED, admin_note)

    def mark_paid(self, admin_note: Optional[str] = None, external_reference: Optional[str] = None) -> None:
        self._transition(PayoutStatus.PAID, admin_note)
        self.processed_at = utcnow()
        if external_reference and external_reference.strip():
            self.external_reference = external_reference.strip()
