"""
订单与购物车数据库模型
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, Money, utc_now


class CartItemModel(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("user_id", "package_id", name="uq_cart_items_user_package"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True, comment="用户ID")
    package_id = Column(Integer, ForeignKey("lesson_packages.id"), nullable=False, comment="课程包ID")
    quantity = Column(Integer, nullable=False, default=1, comment="数量")
    added_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, comment="加入时间")


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_no = Column(String(64), unique=True, nullable=False, index=True, comment="订单号")
    user_id = Column(Integer, nullable=False, index=True, comment="用户ID")
    total_amount = Column(Money, nullable=False, comment="订单总额")
    status = Column(String(20), nullable=False, default="PENDING", index=True, comment="订单状态")
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付时间")
    canceled_at = Column(DateTime(timezone=True), nullable=True, comment="取消时间")
    cancel_reason = Column(Text, nullable=True, comment="取消原因")
    refunded_at = Column(DateTime(timezone=True), nullable=True, comment="退款时间")
    refund_amount = Column(Money, nullable=True, comment="退款金额")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True, comment="创建时间")
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False, comment="更新时间"
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        lazy="selectin",
        order_by="OrderItemModel.id",
    )


class OrderItemModel(Base):
    """订单项：下单时的价格快照，不可修改"""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")
    package_id = Column(Integer, ForeignKey("lesson_packages.id"), nullable=False, index=True, comment="课程包ID")
    price = Column(Money, nullable=False, comment="原价快照")
    discount = Column(Money, nullable=False, default=0, comment="优惠快照")
    final_price = Column(Money, nullable=False, comment="成交价快照")

    order = relationship("OrderModel", back_populates="items")
