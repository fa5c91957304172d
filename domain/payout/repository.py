"""
提现仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from .entity import PayoutMethod, PayoutRequest, PayoutStatus


class PayoutMethodRepository(ABC):

    @abstractmethod
    async def add(self, method: PayoutMethod) -> PayoutMethod:
        pass

    @abstractmethod
    async def get(self, method_id: int) -> Optional[PayoutMethod]:
        pass

    @abstractmethod
    async def update(self, method: PayoutMethod) -> PayoutMethod:
        pass

    @abstractmethod
    async def delete(self, method_id: int) -> None:
        pass

    @abstractmethod
    async def list_by_wallet(self, wallet_id: int) -> List[PayoutMethod]:
        """默认方式在前"""
        pass

    @abstractmethod
    async def find_default(self, wallet_id: int) -> Optional[PayoutMethod]:
        pass

    @abstractmethod
    async def clear_default(self, wallet_id: int) -> None:
        """取消钱包下所有方式的默认标记"""
        pass


class PayoutRequestRepository(ABC):

    @abstractmethod
    async def create(self, payout: PayoutRequest) -> PayoutRequest:
        pass

    @abstractmethod
    async def get_by_id(self, payout_id: int) -> Optional[PayoutRequest]:
        pass

    @abstractmethod
    async def update(self, payout: PayoutRequest) -> PayoutRequest:
        pass

    @abstractmethod
    async def list_page(
        self,
        *,
        wallet_id: Optional[int] = None,
        status: Optional[PayoutStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[PayoutRequest], int]:
        """按申请时间倒序分页，返回 (申请, 总数)"""
        pass
