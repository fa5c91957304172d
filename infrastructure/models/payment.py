"""
支付与报名数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint,
)

from .base import Base, Money, utc_now


class PaymentModel(Base):
    """
    支付数据库模型

    所有业务规则都在 domain.payment.entity.Payment 中
    """
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "(package_id IS NULL) OR (order_id IS NULL)",
            name="ck_payments_single_scope",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True, comment="用户ID")
    package_id = Column(Integer, ForeignKey("lesson_packages.id"), nullable=True, index=True, comment="课程包ID")
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True, comment="订单ID")

    amount = Column(Money, nullable=False, comment="支付金额")
    platform_commission = Column(Money, nullable=False, default=0, comment="平台佣金")
    teacher_earning = Column(Money, nullable=False, default=0, comment="教师收益")
    currency = Column(String(3), nullable=False, default="USD", comment="货币代码 ISO-4217")

    status = Column(String(20), nullable=False, default="PENDING", index=True, comment="支付状态")
    provider_ref = Column(String(200), nullable=True, index=True, comment="网关收款凭证ID")
    client_secret = Column(String(500), nullable=True, comment="前端调用凭证")

    paid_at = Column(DateTime(timezone=True), nullable=True, index=True, comment="支付完成时间")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True, comment="创建时间")
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False, comment="更新时间"
    )


class EnrollmentModel(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "package_id", name="uq_enrollments_user_package"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True, comment="用户ID")
    package_id = Column(Integer, ForeignKey("lesson_packages.id"), nullable=False, index=True, comment="课程包ID")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否有效")
    expires_at = Column(DateTime(timezone=True), nullable=True, comment="到期时间")
    progress = Column(Integer, nullable=False, default=0, comment="学习进度")
    completed_lessons = Column(Integer, nullable=False, default=0, comment="已完成课时")
    enrolled_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, comment="报名时间")
