"""
钱包领域实体 - 钱包、流水、账本意图（outbox）

钱包余额等于其全部流水的有符号合计（CREDIT 为正，DEBIT 为负）。
流水只追加不修改。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.money import ZERO
from domain.common.timeutil import ensure_utc, utcnow

# 历史收益同步的一次性标记
HIST_SYNC_REFERENCE = "HIST_SYNC_V1"


class TransactionType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionSource(str, Enum):
    COURSE_SALE = "COURSE_SALE"
    REFUND_ADJUSTMENT = "REFUND_ADJUSTMENT"
    PAYOUT = "PAYOUT"
    REVERSAL = "REVERSAL"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class IntentStatus(str, Enum):
    """账本意图状态"""
    PENDING = "PENDING"
    DONE = "DONE"
    FAILED = "FAILED"


def sale_reference(payment_id: int, order_item_id: Optional[int] = None) -> str:
    if order_item_id is None:
        return f"SALE:{payment_id}"
    return f"SALE:{payment_id}:{order_item_id}"


def refund_reference(refund_id: int, order_item_id: int) -> str:
    return f"REFUND:{refund_id}:{order_item_id}"


def payout_reference(payout_id: int) -> str:
    return f"PAYOUT:{payout_id}"


def payout_reversal_reference(payout_id: int) -> str:
    return f"PAYOUT_REVERSAL:{payout_id}"


@dataclass
class Wallet:
    id: Optional[int]
    owner_id: int
    available_balance: Decimal = ZERO
    pending_payout: Decimal = ZERO
    currency: str = "USD"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class WalletTransaction:
    id: Optional[int]
    wallet_id: int
    amount: Decimal
    type: TransactionType
    source: TransactionSource
    reference_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == TransactionType.CREDIT else -self.amount


@dataclass
class LedgerIntent:
    """
    账本意图 - 与业务变更同事务写入，提交后再过账到钱包

    reference_id 全局唯一，过账时作为钱包流水的去重键。
    """

    id: Optional[int]
    owner_id: int
    direction: TransactionType
    source: TransactionSource
    amount: Decimal
    reference_id: str
    metadata: dict[str, Any] = field(default_factory=dict)
    status: IntentStatus = IntentStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = ensure_utc(self.created_at)
        self.processed_at = ensure_utc(self.processed_at)
        if self.metadata is None:
            self.metadata = {}

    @classmethod
    def credit(cls, owner_id: int, amount: Decimal, reference_id: str, metadata: dict) -> "LedgerIntent":
        return cls(
            id=None,
            owner_id=owner_id,
            direction=TransactionType.CREDIT,
            source=TransactionSource.COURSE_SALE,
            amount=amount,
            reference_id=reference_id,
            metadata=metadata,
        )

    @classmethod
    def debit(cls, owner_id: int, amount: Decimal, reference_id: str, metadata: dict) -> "LedgerIntent":
        return cls(
            id=None,
            owner_id=owner_id,
            direction=TransactionType.DEBIT,
            source=TransactionSource.REFUND_ADJUSTMENT,
            amount=amount,
            reference_id=reference_id,
            metadata=metadata,
        )

    def mark_done(self) -> None:
        self.status = IntentStatus.DONE
        self.processed_at = utcnow()
        self.last_error = None

    def record_failure(self, error: str, max_attempts: int) -> None:
        """记录一次过账失败；达到上限后标记为 FAILED"""
        self.attempts += 1
        self.last_error = error[:1000]
        if self.attempts >= max_attempts:
            self.status = IntentStatus.FAILED

    def reset(self) -> None:
        self.status = IntentStatus.PENDING
        self.attempts = 0
