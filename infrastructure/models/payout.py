"""
提现数据库模型 - 收款方式、提现申请
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from .base import Base, Money, utc_now


class PayoutMethodModel(Base):
    __tablename__ = "payout_methods"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False, index=True, comment="钱包ID")
    type = Column(String(30), nullable=False, comment="收款方式类型")
    label = Column(String(100), nullable=False, comment="显示名称")
    details = Column(JSON, nullable=False, default=dict, comment="收款账户信息")
    is_default = Column(Boolean, nullable=False, default=False, comment="是否默认")
    is_verified = Column(Boolean, nullable=False, default=False, comment="是否已核验")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, comment="创建时间")


class PayoutRequestModel(Base):
    __tablename__ = "payout_requests"
    __table_args__ = (
        Index("ix_payout_requests_wallet_id_status", "wallet_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False, comment="钱包ID")
    method_id = Column(
        Integer, ForeignKey("payout_methods.id", ondelete="SET NULL"), nullable=True, comment="收款方式ID"
    )
    amount = Column(Money, nullable=False, comment="提现金额")
    status = Column(String(20), nullable=False, default="PENDING", index=True, comment="提现状态")
    note = Column(Text, nullable=True, comment="申请备注")
    admin_note = Column(Text, nullable=True, comment="管理员备注")
    external_reference = Column(String(200), nullable=True, comment="打款流水号")
    requested_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True, comment="申请时间")
    processed_at = Column(DateTime(timezone=True), nullable=True, comment="打款时间")
