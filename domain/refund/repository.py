"""
退款仓储接口
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .entity import Refund, RefundStatus


class RefundRepository(ABC):
    """退款仓储抽象接口"""

    @abstractmethod
    async def create(self, refund: Refund) -> Refund:
        pass

    @abstractmethod
    async def get_by_id(self, refund_id: int) -> Optional[Refund]:
        pass

    @abstractmethod
    async def update(self, refund: Refund) -> Refund:
        pass

    @abstractmethod
    async def find_open_for_order(self, order_id: int) -> Optional[Refund]:
        """查找订单上处于 PENDING/PROCESSING 的退款"""
        pass

    @abstractmethod
    async def list_page(
        self,
        *,
        status: Optional[RefundStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Refund], int]:
        """分页查询退款，返回 (退款, 总数)"""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int) -> List[Refund]:
        pass

    @abstractmethod
    async def count_by_status(self) -> dict[RefundStatus, int]:
        pass

    @abstractmethod
    async def sum_amount(self, status: Optional[RefundStatus] = None) -> Decimal:
        pass

    @abstractmethod
    async def completed_totals_by_order(self, order_ids: Iterable[int]) -> dict[int, Decimal]:
        """各订单已完成退款金额合计"""
        pass
