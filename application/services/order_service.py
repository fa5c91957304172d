"""
购物车与订单应用服务
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dto import CartDTO, CartItemDTO, OrderDTO, OrderItemDTO
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import (
    AlreadyEnrolledException,
    AuthorizationException,
    DomainValidationException,
    ResourceNotFoundException,
)
from domain.common.money import ZERO
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order

logger = get_logger(__name__)


def order_to_dto(order: Order) -> OrderDTO:
    return OrderDTO(
        id=order.id,
        order_no=order.order_no,
        user_id=order.user_id,
        total_amount=order.total_amount,
        status=order.status.value,
        items=[
            OrderItemDTO(
                id=item.id,
                package_id=item.package_id,
                price=item.price,
                discount=item.discount,
                final_price=item.final_price,
            )
            for item in order.items
        ],
        paid_at=order.paid_at,
        canceled_at=order.canceled_at,
        cancel_reason=order.cancel_reason,
        refunded_at=order.refunded_at,
        refund_amount=order.refund_amount,
        created_at=order.created_at,
    )


class OrderService:
    """购物车与订单应用服务"""

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def get_cart(self, user_id: int) -> CartDTO:
        """购物车明细；下架的课程包标记为不可用且不计入总额"""
        async with self._uow_factory(readonly=True) as uow:
            lines = await uow.cart_repository.list_items(user_id)
            listings = await uow.catalog_repository.get_packages(line.package_id for line in lines)

        items = []
        total = ZERO
        for line in lines:
            listing = listings.get(line.package_id)
            if listing is None:
                items.append(CartItemDTO(package_id=line.package_id, available=False, added_at=line.added_at))
                continue
            if listing.is_purchasable:
                total += listing.package.final_price
            items.append(
                CartItemDTO(
                    package_id=line.package_id,
                    package_name=listing.package.name,
                    course_id=listing.course.id,
                    course_title=listing.course.title,
                    price=listing.package.price,
                    discount=listing.package.discount,
                    final_price=listing.package.final_price,
                    quantity=line.quantity,
                    available=listing.is_purchasable,
                    added_at=line.added_at,
                )
            )
        return CartDTO(items=items, total=total, count=len(items))

    async def add_to_cart(self, user_id: int, package_id: int) -> CartDTO:
        async with self._uow_factory() as uow:
            listing = await uow.catalog_repository.get_package(package_id)
            if listing is None:
                raise ResourceNotFoundException("Package", package_id)
            if not listing.is_purchasable:
                raise DomainValidationException(
                    "Package is not available for purchase",
                    field="package_id",
                    details={"package_id": package_id},
                )
            if await uow.enrollment_repository.get_active(user_id, package_id):
                raise AlreadyEnrolledException(package_id)
            await uow.cart_repository.add(user_id, package_id)
        logger.info("cart_item_added", user_id=user_id, package_id=package_id)
        return await self.get_cart(user_id)

    async def remove_from_cart(self, user_id: int, package_id: int) -> CartDTO:
        async with self._uow_factory() as uow:
            removed = await uow.cart_repository.remove(user_id, package_id)
        if not removed:
            raise ResourceNotFoundException("Cart item", package_id)
        logger.info("cart_item_removed", user_id=user_id, package_id=package_id)
        return await self.get_cart(user_id)

    async def list_orders(self, user_id: int, skip: int = 0, limit: Optional[int] = None) -> list[OrderDTO]:
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_by_user(user_id, skip=max(0, skip), limit=limit)
        return [order_to_dto(order) for order in orders]

    async def get_order(self, user_id: int, order_id: int) -> OrderDTO:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise ResourceNotFoundException("Order", order_id)
        if order.user_id != user_id:
            raise AuthorizationException("You do not have access to this order")
        return order_to_dto(order)

    async def cancel_order(self, user_id: int, order_id: int, reason: Optional[str] = None) -> OrderDTO:
        """取消待支付订单"""
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise ResourceNotFoundException("Order", order_id)
            if order.user_id != user_id:
                raise AuthorizationException("You do not have access to this order")
            order.cancel(reason)
            order = await uow.order_repository.update(order)
        logger.info("order_cancelled", order_id=order_id, user_id=user_id)
        return order_to_dto(order)
