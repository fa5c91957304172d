"""
课程目录数据库模型 - 教师档案、课程、课程包
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from .base import Base, Money, utc_now


class TeacherProfileModel(Base):
    __tablename__ = "teacher_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, unique=True, nullable=False, index=True, comment="用户ID")
    commission_rate = Column(Money, nullable=True, comment="平台佣金费率（百分比），为空则使用平台默认")
    total_students = Column(Integer, nullable=False, default=0, comment="累计学生数")
    total_earnings = Column(Money, nullable=False, default=0, comment="累计收益")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, comment="创建时间")


class CourseModel(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    teacher_profile_id = Column(
        Integer, ForeignKey("teacher_profiles.id"), nullable=False, index=True, comment="教师档案ID"
    )
    title = Column(String(200), nullable=False, comment="课程标题")
    is_published = Column(Boolean, nullable=False, default=False, comment="是否已发布")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, comment="创建时间")


class LessonPackageModel(Base):
    __tablename__ = "lesson_packages"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True, comment="课程ID")
    name = Column(String(200), nullable=False, comment="课程包名称")
    price = Column(Money, nullable=False, comment="原价")
    discount = Column(Money, nullable=False, default=0, comment="优惠")
    final_price = Column(Money, nullable=False, comment="成交价")
    duration_days = Column(Integer, nullable=True, comment="有效天数，为空表示永久")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否在售")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, comment="创建时间")
