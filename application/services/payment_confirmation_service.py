"""
Payment confirmation workflow.

1. A payment that is no longer PENDING returns the existing result.
2. When a charge handle and a gateway are both available, the charge is
   verified with the provider before anything is written.
3. Package payments enroll the student; order payments enroll every item,
   mark the order PAID and clear the cart. Both happen in one transaction
   that starts with a conditional PENDING -> COMPLETED update, so two
   concurrent confirmations cannot both apply side effects.
4. Teacher wallet credits are written as ledger intents in that same
   transaction and drained right after commit. A drain failure is recorded
   on the intent and never fails the confirmation.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Callable, Optional

from application.dto import ConfirmationDTO
from application.ports.payment_gateway import PaymentGateway
from application.services.wallet_service import WalletSyncService
from core.config import settings
from core.logging_config import get_logger
from domain.catalog.entity import PackageListing
from domain.common.exceptions import (
    AuthorizationException,
    BusinessException,
    PaymentVerificationException,
    ResourceNotFoundException,
)
from domain.common.money import ZERO
from domain.common.timeutil import utcnow
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.earnings.commission import calculate_commission
from domain.payment.entity import Payment, PaymentStatus
from domain.wallet.entity import LedgerIntent, sale_reference
from shared.codes.payment_codes import CHARGE_SUCCEEDED

logger = get_logger(__name__)


class PaymentConfirmationService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: Optional[PaymentGateway],
        wallet_sync: WalletSyncService,
        *,
        default_rate: Optional[Decimal] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._wallet_sync = wallet_sync
        self._default_rate = settings.commerce.platform_commission_rate if default_rate is None else default_rate

    async def confirm(
        self,
        user_id: int,
        payment_id: int,
        charge_id: Optional[str] = None,
    ) -> ConfirmationDTO:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_id(payment_id)
        if payment is None:
            raise ResourceNotFoundException("Payment", payment_id)
        if payment.user_id != user_id:
            raise AuthorizationException("You do not have access to this payment")

        payment.ensure_scope()
        if payment.status != PaymentStatus.PENDING:
            return await self._existing_result(payment)

        await self._verify(payment, charge_id)

        if payment.is_package_payment:
            result, intent_ids = await self._complete_package_payment(payment)
        else:
            result, intent_ids = await self._complete_order_payment(payment)

        if intent_ids:
            # Committed already; failures stay on the intent rows for the worker.
            await self._wallet_sync.process_intents(ids=intent_ids)
        return result

    async def _verify(self, payment: Payment, charge_id: Optional[str]) -> None:
        handle = charge_id or payment.provider_ref
        if self._gateway is None:
            if handle:
                logger.warning(
                    "payment_verification_skipped",
                    payment_id=payment.id,
                    reason="gateway_not_configured",
                )
            return
        if not handle:
            logger.info("payment_confirmed_without_handle", payment_id=payment.id)
            return
        if charge_id and payment.provider_ref and charge_id != payment.provider_ref:
            raise PaymentVerificationException(payment.id, "charge handle does not belong to this payment")

        try:
            charge = await self._gateway.retrieve_charge(handle)
        except BusinessException as exc:
            logger.warning("payment_verification_error", payment_id=payment.id, error=exc.message)
            raise PaymentVerificationException(payment.id, "provider lookup failed") from exc

        if charge.status != CHARGE_SUCCEEDED:
            raise PaymentVerificationException(payment.id, f"charge status is {charge.status}")
        if charge.amount_minor != payment.amount_minor:
            raise PaymentVerificationException(payment.id, "charge amount mismatch")
        if str(charge.metadata.get("paymentId")) != str(payment.id):
            raise PaymentVerificationException(payment.id, "charge metadata mismatch")

    async def _complete_package_payment(self, payment: Payment) -> tuple[ConfirmationDTO, list[int]]:
        intent_ids: list[int] = []
        async with self._uow_factory() as uow:
            paid_at = utcnow()
            won = await uow.payment_repository.mark_completed_if_pending(payment.id, paid_at)
            if won:
                listing = await uow.catalog_repository.get_package(payment.package_id)
                if listing is None:
                    raise ResourceNotFoundException("Package", payment.package_id)

                enrollment, created = await uow.enrollment_repository.upsert_active(
                    payment.user_id,
                    payment.package_id,
                    listing.package.expiry_from(paid_at),
                )
                intent_id = await self._credit_teacher(
                    uow,
                    listing,
                    earning=payment.teacher_earning,
                    new_student=created,
                    reference_id=sale_reference(payment.id),
                    metadata={
                        "paymentId": payment.id,
                        "packageId": payment.package_id,
                        "studentId": payment.user_id,
                        "gross": str(payment.amount),
                        "commission": str(payment.platform_commission),
                    },
                )
                if intent_id is not None:
                    intent_ids.append(intent_id)

        if not won:
            logger.info("payment_confirm_race_lost", payment_id=payment.id)
            return await self._existing_result(payment), []

        logger.info(
            "payment_confirmed",
            payment_id=payment.id,
            package_id=payment.package_id,
            enrollment_id=enrollment.id,
            new_enrollment=created,
        )
        return (
            ConfirmationDTO(
                payment_id=payment.id,
                status=PaymentStatus.COMPLETED.value,
                enrollment_id=enrollment.id,
                enrollment_ids=[enrollment.id],
            ),
            intent_ids,
        )

    async def _complete_order_payment(self, payment: Payment) -> tuple[ConfirmationDTO, list[int]]:
        intent_ids: list[int] = []
        enrollment_ids: list[int] = []
        async with self._uow_factory() as uow:
            paid_at = utcnow()
            won = await uow.payment_repository.mark_completed_if_pending(payment.id, paid_at)
            if won:
                order = await uow.order_repository.get_by_id(payment.order_id)
                if order is None:
                    raise ResourceNotFoundException("Order", payment.order_id)
                listings = await uow.catalog_repository.get_packages(order.package_ids)

                for item in order.items:
                    listing = listings.get(item.package_id)
                    if listing is None:
                        logger.warning("order_item_package_missing", order_id=order.id, package_id=item.package_id)
                        continue
                    enrollment, created = await uow.enrollment_repository.upsert_active(
                        order.user_id,
                        item.package_id,
                        listing.package.expiry_from(paid_at),
                    )
                    enrollment_ids.append(enrollment.id)

                    split = calculate_commission(
                        item.final_price,
                        listing.commission_rate,
                        default_rate=self._default_rate,
                    )
                    intent_id = await self._credit_teacher(
                        uow,
                        listing,
                        earning=split.teacher_earning,
                        new_student=created,
                        reference_id=sale_reference(payment.id, item.id),
                        metadata={
                            "paymentId": payment.id,
                            "orderId": order.id,
                            "orderNo": order.order_no,
                            "orderItemId": item.id,
                            "packageId": item.package_id,
                            "studentId": order.user_id,
                            "gross": str(item.final_price),
                            "commission": str(split.platform_commission),
                        },
                    )
                    if intent_id is not None:
                        intent_ids.append(intent_id)

                order.mark_paid(paid_at)
                await uow.order_repository.update(order)
                await uow.cart_repository.clear(order.user_id)

        if not won:
            logger.info("payment_confirm_race_lost", payment_id=payment.id)
            return await self._existing_result(payment), []

        logger.info(
            "order_payment_confirmed",
            payment_id=payment.id,
            order_id=payment.order_id,
            enrollments=len(enrollment_ids),
        )
        return (
            ConfirmationDTO(
                payment_id=payment.id,
                status=PaymentStatus.COMPLETED.value,
                order_id=payment.order_id,
                enrollment_ids=enrollment_ids,
            ),
            intent_ids,
        )

    async def _credit_teacher(
        self,
        uow: AbstractUnitOfWork,
        listing: PackageListing,
        *,
        earning: Decimal,
        new_student: bool,
        reference_id: str,
        metadata: dict,
    ) -> Optional[int]:
        """Bump teacher counters and queue the wallet credit; returns the intent id."""
        teacher = listing.teacher
        if teacher is None:
            logger.warning("package_without_teacher", package_id=listing.package.id)
            return None
        await uow.catalog_repository.increment_teacher_stats(
            teacher.id,
            students=1 if new_student else 0,
            earnings=earning,
        )
        if earning <= ZERO:
            return None
        intent = await uow.outbox_repository.add(
            LedgerIntent.credit(
                teacher.user_id,
                earning,
                reference_id,
                {**metadata, "courseId": listing.course.id, "teacherProfileId": teacher.id},
            )
        )
        return intent.id

    async def _existing_result(self, payment: Payment) -> ConfirmationDTO:
        async with self._uow_factory(readonly=True) as uow:
            current = await uow.payment_repository.get_by_id(payment.id)
            if current.is_package_payment:
                enrollment = await uow.enrollment_repository.get(current.user_id, current.package_id)
                enrollment_ids = [enrollment.id] if enrollment else []
                return ConfirmationDTO(
                    payment_id=current.id,
                    status=current.status.value,
                    already_confirmed=True,
                    enrollment_id=enrollment.id if enrollment else None,
                    enrollment_ids=enrollment_ids,
                )
        return ConfirmationDTO(
            payment_id=current.id,
            status=current.status.value,
            already_confirmed=True,
            order_id=current.order_id,
        )
