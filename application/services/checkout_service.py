"""
Checkout: turn a package or the cart into a PENDING payment with a gateway
charge handle.

The payment row is committed before the gateway is called, so a gateway
outage never loses the purchase attempt; the client can retry confirmation
without a handle and the payment still completes.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Callable, Optional

from application.dto import PaymentIntentDTO
from application.dtos.payments import CreateCharge
from application.ports.payment_gateway import PaymentGateway
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import (
    AlreadyEnrolledException,
    BusinessException,
    DomainValidationException,
    ResourceNotFoundException,
)
from domain.common.money import ZERO
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.earnings.commission import aggregate_commission, calculate_commission
from domain.order.entity import Order, OrderItem
from domain.payment.entity import Payment

logger = get_logger(__name__)


class CheckoutService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: Optional[PaymentGateway] = None,
        *,
        default_rate: Optional[Decimal] = None,
        currency: Optional[str] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._default_rate = settings.commerce.platform_commission_rate if default_rate is None else default_rate
        self._currency = currency or settings.commerce.currency

    async def create_package_intent(self, user_id: int, package_id: int) -> PaymentIntentDTO:
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

            split = calculate_commission(
                listing.package.final_price,
                listing.commission_rate,
                default_rate=self._default_rate,
            )
            payment = await uow.payment_repository.create(
                Payment.for_package(
                    user_id=user_id,
                    package_id=package_id,
                    amount=split.amount,
                    platform_commission=split.platform_commission,
                    teacher_earning=split.teacher_earning,
                    currency=self._currency,
                )
            )

        payment = await self._attach_charge(
            payment,
            {"paymentId": str(payment.id), "userId": str(user_id), "packageId": str(package_id)},
        )
        logger.info(
            "payment_intent_created",
            payment_id=payment.id,
            package_id=package_id,
            amount=str(payment.amount),
            commission_rate=str(split.rate),
        )
        return self._to_dto(payment)

    async def create_cart_intent(self, user_id: int) -> PaymentIntentDTO:
        async with self._uow_factory() as uow:
            cart = await uow.cart_repository.list_items(user_id)
            if not cart:
                raise DomainValidationException("Cart is empty", field="cart")

            listings = await uow.catalog_repository.get_packages(line.package_id for line in cart)
            items = []
            for line in cart:
                listing = listings.get(line.package_id)
                if listing is None or not listing.is_purchasable:
                    raise DomainValidationException(
                        "Package is not available for purchase",
                        field="package_id",
                        details={"package_id": line.package_id},
                    )
                if await uow.enrollment_repository.get_active(user_id, line.package_id):
                    raise AlreadyEnrolledException(line.package_id)
                items.append(
                    OrderItem(
                        id=None,
                        package_id=line.package_id,
                        price=listing.package.price,
                        discount=listing.package.discount,
                        final_price=listing.package.final_price,
                    )
                )

            order = await uow.order_repository.create(Order.from_items(user_id, items))
            split = aggregate_commission(
                ((item.final_price, listings[item.package_id].commission_rate) for item in order.items),
                default_rate=self._default_rate,
            )
            payment = await uow.payment_repository.create(
                Payment.for_order(
                    user_id=user_id,
                    order_id=order.id,
                    amount=order.total_amount,
                    platform_commission=split.platform_commission,
                    teacher_earning=split.teacher_earning,
                    currency=self._currency,
                )
            )

        payment = await self._attach_charge(
            payment,
            {
                "paymentId": str(payment.id),
                "userId": str(user_id),
                "orderId": str(order.id),
                "orderNo": order.order_no,
            },
        )
        logger.info(
            "cart_payment_intent_created",
            payment_id=payment.id,
            order_id=order.id,
            order_no=order.order_no,
            items=len(order.items),
            amount=str(payment.amount),
        )
        return self._to_dto(payment, order_no=order.order_no)

    async def _attach_charge(self, payment: Payment, metadata: dict[str, str]) -> Payment:
        """Request a charge handle; failures leave the payment without one."""
        if self._gateway is None:
            logger.warning("payment_gateway_unavailable", payment_id=payment.id)
            return payment
        if payment.amount <= ZERO:
            return payment
        try:
            handle = await self._gateway.create_charge(
                CreateCharge(
                    amount=payment.amount,
                    currency=payment.currency,
                    metadata=metadata,
                    idempotency_key=f"payment-{payment.id}",
                )
            )
        except BusinessException as exc:
            logger.warning(
                "payment_charge_create_failed",
                payment_id=payment.id,
                error_type=exc.error_type,
                error=exc.message,
            )
            return payment

        async with self._uow_factory() as uow:
            payment.attach_charge(handle.charge_id, handle.client_secret)
            return await uow.payment_repository.update(payment)

    @staticmethod
    def _to_dto(payment: Payment, order_no: Optional[str] = None) -> PaymentIntentDTO:
        return PaymentIntentDTO(
            payment_id=payment.id,
            client_secret=payment.client_secret,
            payment_intent_id=payment.provider_ref,
            amount=payment.amount,
            platform_commission=payment.platform_commission,
            teacher_earning=payment.teacher_earning,
            currency=payment.currency,
            package_id=payment.package_id,
            order_id=payment.order_id,
            order_no=order_no,
        )
