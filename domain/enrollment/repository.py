"""
报名仓储接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional, Tuple

from .entity import Enrollment


class EnrollmentRepository(ABC):

    @abstractmethod
    async def get(self, user_id: int, package_id: int) -> Optional[Enrollment]:
        """获取报名（无论是否激活）"""
        pass

    @abstractmethod
    async def get_active(self, user_id: int, package_id: int) -> Optional[Enrollment]:
        """获取激活中的报名"""
        pass

    @abstractmethod
    async def upsert_active(
        self,
        user_id: int,
        package_id: int,
        expires_at: Optional[datetime],
    ) -> Tuple[Enrollment, bool]:
        """插入或激活报名

        返回 (报名, 是否新插入)。新插入的判断必须由数据库原子完成
        （insert ... on conflict do nothing），不能先查后写。
        """
        pass

    @abstractmethod
    async def deactivate(self, user_id: int, package_ids: Iterable[int]) -> int:
        """停用报名，返回受影响行数"""
        pass
