"""
课程目录仓储接口
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable, List, Optional

from .entity import Course, PackageListing, TeacherProfile


class CatalogRepository(ABC):
    """课程目录仓储抽象接口"""

    @abstractmethod
    async def get_package(self, package_id: int) -> Optional[PackageListing]:
        """获取课程包及其课程与教师"""
        pass

    @abstractmethod
    async def get_packages(self, package_ids: Iterable[int]) -> dict[int, PackageListing]:
        """批量获取课程包，按ID索引"""
        pass

    @abstractmethod
    async def get_teacher_by_user(self, user_id: int) -> Optional[TeacherProfile]:
        """根据用户ID获取教师档案"""
        pass

    @abstractmethod
    async def list_courses_by_teacher(self, teacher_profile_id: int) -> List[Course]:
        """获取教师的全部课程"""
        pass

    @abstractmethod
    async def list_package_ids_by_teacher(self, teacher_profile_id: int) -> List[int]:
        """获取教师名下全部课程包ID"""
        pass

    @abstractmethod
    async def increment_teacher_stats(
        self,
        teacher_profile_id: int,
        *,
        students: int = 0,
        earnings: Decimal = Decimal("0"),
    ) -> None:
        """原子递增教师的学生数与累计收益"""
        pass
