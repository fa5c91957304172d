"""
订单与购物车仓储实现
"""
from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.money import as_decimal
from domain.order.entity import CartItem, Order, OrderItem, OrderStatus
from domain.order.repository import CartRepository, OrderRepository
from infrastructure.models.order import CartItemModel, OrderItemModel, OrderModel

from ._dialect import upsert_insert

logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _item(model: OrderItemModel) -> OrderItem:
        return OrderItem(
            id=model.id,
            order_id=model.order_id,
            package_id=model.package_id,
            price=as_decimal(model.price),
            discount=as_decimal(model.discount),
            final_price=as_decimal(model.final_price),
        )

    def _to_entity(self, model: OrderModel) -> Order:
        return Order(
            id=model.id,
            order_no=model.order_no,
            user_id=model.user_id,
            total_amount=as_decimal(model.total_amount),
            status=OrderStatus(model.status),
            items=[self._item(item) for item in model.items],
            paid_at=model.paid_at,
            canceled_at=model.canceled_at,
            cancel_reason=model.cancel_reason,
            refunded_at=model.refunded_at,
            refund_amount=as_decimal(model.refund_amount) if model.refund_amount is not None else None,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def _get_model(self, order_id: int) -> Optional[OrderModel]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, order: Order) -> Order:
        db_order = OrderModel(
            order_no=order.order_no,
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status.value,
            items=[
                OrderItemModel(
                    package_id=item.package_id,
                    price=item.price,
                    discount=item.discount,
                    final_price=item.final_price,
                )
                for item in order.items
            ],
        )
        self.session.add(db_order)
        await self.session.flush()
        logger.info(
            "order_created",
            order_id=db_order.id,
            order_no=db_order.order_no,
            items=len(db_order.items),
            total=str(db_order.total_amount),
        )
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        db_order = await self._get_model(order_id)
        return self._to_entity(db_order) if db_order else None

    async def get_many(self, order_ids: Iterable[int]) -> dict[int, Order]:
        ids = set(order_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(OrderModel).where(OrderModel.id.in_(ids)))
        return {m.id: self._to_entity(m) for m in result.scalars().all()}

    async def list_by_user(self, user_id: int, skip: int = 0, limit: int = 20) -> List[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.user_id == user_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, order: Order) -> Order:
        db_order = await self._get_model(order.id)
        if not db_order:
            raise ValueError(f"Order with id {order.id} not found")

        db_order.status = order.status.value
        db_order.paid_at = order.paid_at
        db_order.canceled_at = order.canceled_at
        db_order.cancel_reason = order.cancel_reason
        db_order.refunded_at = order.refunded_at
        db_order.refund_amount = order.refund_amount

        await self.session.flush()
        logger.info("order_updated", order_id=db_order.id, status=db_order.status)
        return self._to_entity(db_order)


class SQLAlchemyCartRepository(CartRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: CartItemModel) -> CartItem:
        return CartItem(
            id=model.id,
            user_id=model.user_id,
            package_id=model.package_id,
            quantity=model.quantity,
            added_at=model.added_at,
        )

    async def list_items(self, user_id: int) -> List[CartItem]:
        result = await self.session.execute(
            select(CartItemModel)
            .where(CartItemModel.user_id == user_id)
            .order_by(CartItemModel.added_at, CartItemModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def add(self, user_id: int, package_id: int) -> CartItem:
        await self.session.execute(
            upsert_insert(self.session, CartItemModel)
            .values(user_id=user_id, package_id=package_id, quantity=1)
            .on_conflict_do_nothing(index_elements=["user_id", "package_id"])
        )
        result = await self.session.execute(
            select(CartItemModel).where(
                CartItemModel.user_id == user_id,
                CartItemModel.package_id == package_id,
            )
        )
        return self._to_entity(result.scalar_one())

    async def remove(self, user_id: int, package_id: int) -> bool:
        result = await self.session.execute(
            delete(CartItemModel).where(
                CartItemModel.user_id == user_id,
                CartItemModel.package_id == package_id,
            )
        )
        return (result.rowcount or 0) > 0

    async def clear(self, user_id: int) -> int:
        result = await self.session.execute(
            delete(CartItemModel).where(CartItemModel.user_id == user_id)
        )
        return result.rowcount or 0
