"""
退款数据库模型
"""
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text

from .base import Base, Money, utc_now


class RefundModel(Base):
    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")
    user_id = Column(Integer, nullable=False, index=True, comment="申请人")
    amount = Column(Money, nullable=False, comment="退款金额")
    reason = Column(Text, nullable=False, comment="退款原因")
    reason_category = Column(String(50), nullable=True, comment="原因分类")
    status = Column(String(20), nullable=False, default="PENDING", index=True, comment="退款状态")
    refund_method = Column(String(30), nullable=False, default="ORIGINAL_PAYMENT", comment="退款方式")
    bank_details = Column(JSON, nullable=True, comment="银行转账信息")
    notes = Column(Text, nullable=True, comment="管理员备注")
    provider_refund_id = Column(String(200), nullable=True, comment="网关退款ID")
    processed_at = Column(DateTime(timezone=True), nullable=True, comment="审核时间")
    completed_at = Column(DateTime(timezone=True), nullable=True, comment="完成时间")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True, comment="创建时间")
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False, comment="更新时间"
    )
