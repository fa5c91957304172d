"""
钱包数据库模型 - 钱包、流水、账本意图（outbox）
"""
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from .base import Base, Money, utc_now


class WalletModel(Base):
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, unique=True, nullable=False, index=True, comment="钱包所有者（教师用户ID）")
    available_balance = Column(Money, nullable=False, default=0, comment="可用余额")
    pending_payout = Column(Money, nullable=False, default=0, comment="待提现金额")
    currency = Column(String(3), nullable=False, default="USD", comment="货币代码")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, comment="创建时间")
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False, comment="更新时间"
    )


class WalletTransactionModel(Base):
    """钱包流水，只追加"""

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        UniqueConstraint("wallet_id", "reference_id", name="uq_wallet_transactions_reference"),
    )

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True, comment="钱包ID")
    amount = Column(Money, nullable=False, comment="金额（正数）")
    type = Column(String(10), nullable=False, index=True, comment="CREDIT/DEBIT")
    source = Column(String(30), nullable=False, index=True, comment="流水来源")
    reference_id = Column(String(120), nullable=True, comment="业务引用ID（去重键）")
    extra = Column("metadata", JSON, nullable=False, default=dict, comment="附加信息")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True, comment="创建时间")


class WalletOutboxModel(Base):
    """账本意图：与业务数据同事务写入，提交后由 worker 过账"""

    __tablename__ = "wallet_outbox"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, nullable=False, index=True, comment="钱包所有者")
    direction = Column(String(10), nullable=False, comment="CREDIT/DEBIT")
    source = Column(String(30), nullable=False, comment="流水来源")
    amount = Column(Money, nullable=False, comment="金额")
    reference_id = Column(String(120), unique=True, nullable=False, comment="引用ID（全局唯一）")
    extra = Column("metadata", JSON, nullable=False, default=dict, comment="附加信息")
    status = Column(String(10), nullable=False, default="PENDING", index=True, comment="PENDING/DONE/FAILED")
    attempts = Column(Integer, nullable=False, default=0, comment="已尝试次数")
    last_error = Column(Text, nullable=True, comment="最近一次错误")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, comment="创建时间")
    processed_at = Column(DateTime(timezone=True), nullable=True, comment="过账时间")
