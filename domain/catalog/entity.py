"""
课程目录领域实体 - 教师档案、课程、课程包

本服务只读取目录数据（课程 CRUD 不在本服务范围内），
但教师的统计计数器由支付确认流程维护。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from domain.common.money import ZERO


@dataclass
class TeacherProfile:
    """教师档案：佣金费率覆盖平台默认值，累计学生数与收益"""

    id: Optional[int]
    user_id: int
    commission_rate: Optional[Decimal] = None
    total_students: int = 0
    total_earnings: Decimal = ZERO


@dataclass
class Course:
    id: Optional[int]
    teacher_profile_id: int
    title: str
    is_published: bool = False


@dataclass
class LessonPackage:
    id: Optional[int]
    course_id: int
    name: str
    price: Decimal
    discount: Decimal
    final_price: Decimal
    duration_days: Optional[int] = None
    is_active: bool = True

    def expiry_from(self, start: datetime) -> Optional[datetime]:
        """根据课程包时长计算到期时间，无时长则永久有效"""
        if not self.duration_days:
            return None
        return start + timedelta(days=self.duration_days)


@dataclass
class PackageListing:
    """课程包 + 所属课程 + 授课教师的只读组合视图"""

    package: LessonPackage
    course: Course
    teacher: Optional[TeacherProfile]

    @property
    def is_purchasable(self) -> bool:
        return self.package.is_active and self.course.is_published

    @property
    def commission_rate(self) -> Optional[Decimal]:
        return self.teacher.commission_rate if self.teacher else None
