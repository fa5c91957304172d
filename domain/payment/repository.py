"""
支付仓储接口 - 定义支付数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional

from .entity import Payment


class PaymentRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """创建支付记录"""
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        """根据ID获取支付"""
        pass

    @abstractmethod
    async def get_by_order_id(self, order_id: int) -> Optional[Payment]:
        """根据订单ID获取支付（一个订单一笔支付）"""
        pass

    @abstractmethod
    async def update(self, payment: Payment) -> Payment:
        """更新支付记录"""
        pass

    @abstractmethod
    async def mark_completed_if_pending(self, payment_id: int, paid_at: datetime) -> bool:
        """条件更新 PENDING -> COMPLETED

        返回 False 表示并发确认中已有其他请求完成了该支付。
        """
        pass

    @abstractmethod
    async def list_completed_with_paid_at(self) -> List[Payment]:
        """获取全部已完成且有支付时间的支付（历史同步用）"""
        pass

    @abstractmethod
    async def list_completed_for_packages(self, package_ids: Iterable[int]) -> List[Payment]:
        """获取涉及指定课程包的已完成支付（直接购买或订单包含）"""
        pass
