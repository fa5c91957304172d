"""
订单与购物车仓储接口
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .entity import CartItem, Order


class OrderRepository(ABC):

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单及订单项"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """获取订单（含订单项）"""
        pass

    @abstractmethod
    async def get_many(self, order_ids: Iterable[int]) -> dict[int, Order]:
        """批量获取订单（含订单项），按ID索引"""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int, skip: int = 0, limit: int = 20) -> List[Order]:
        """获取用户订单，按创建时间倒序"""
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """更新订单状态字段（订单项不可变）"""
        pass


class CartRepository(ABC):

    @abstractmethod
    async def list_items(self, user_id: int) -> List[CartItem]:
        pass

    @abstractmethod
    async def add(self, user_id: int, package_id: int) -> CartItem:
        """加入购物车；已存在则保持原样"""
        pass

    @abstractmethod
    async def remove(self, user_id: int, package_id: int) -> bool:
        pass

    @abstractmethod
    async def clear(self, user_id: int) -> int:
        """清空购物车，返回删除行数"""
        pass
