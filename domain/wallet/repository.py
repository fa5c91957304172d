"""
钱包仓储接口
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from domain.common.money import ZERO

from .entity import (
    IntentStatus,
    LedgerIntent,
    TransactionSource,
    TransactionType,
    Wallet,
    WalletTransaction,
)


class WalletRepository(ABC):

    @abstractmethod
    async def get_by_owner(self, owner_id: int) -> Optional[Wallet]:
        pass

    @abstractmethod
    async def get_by_id(self, wallet_id: int) -> Optional[Wallet]:
        pass

    @abstractmethod
    async def ensure(self, owner_id: int, currency: str) -> Wallet:
        """获取或创建钱包（insert ... on conflict do nothing，不会重复创建）"""
        pass

    @abstractmethod
    async def find_transaction(self, wallet_id: int, reference_id: str) -> Optional[WalletTransaction]:
        """按引用ID查找流水（去重用）"""
        pass

    @abstractmethod
    async def add_transaction(self, transaction: WalletTransaction) -> WalletTransaction:
        pass

    @abstractmethod
    async def adjust_balance(
        self,
        wallet_id: int,
        delta: Decimal,
        *,
        pending_delta: Decimal = ZERO,
        floor: Optional[Decimal] = None,
    ) -> Optional[Decimal]:
        """
        原子调整可用余额与待提现金额，返回调整后的可用余额

        给定 floor 时，调整后余额低于 floor 则不做修改并返回 None。
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        wallet_id: int,
        *,
        limit: int,
        offset: int,
        type: Optional[TransactionType] = None,
        source: Optional[TransactionSource] = None,
    ) -> Tuple[List[WalletTransaction], int]:
        """分页查询流水，按时间倒序，返回 (流水, 总数)"""
        pass


class LedgerOutboxRepository(ABC):
    """账本意图（outbox）仓储"""

    @abstractmethod
    async def add(self, intent: LedgerIntent) -> LedgerIntent:
        pass

    @abstractmethod
    async def get(self, intent_id: int) -> Optional[LedgerIntent]:
        pass

    @abstractmethod
    async def list_ids(
        self,
        status: IntentStatus,
        *,
        ids: Optional[Iterable[int]] = None,
        limit: int = 100,
    ) -> List[int]:
        """按创建顺序列出指定状态的意图ID"""
        pass

    @abstractmethod
    async def update(self, intent: LedgerIntent) -> LedgerIntent:
        pass

    @abstractmethod
    async def reset_failed(self) -> int:
        """将 FAILED 意图重置为 PENDING，返回数量"""
        pass
