"""
Refund settlement: student requests, admin review, and completion.

Completion reverses the teacher side of the sale. Each order item's share
of the refund is ``final_price / items_total * refund_amount`` and the
teacher bears that share net of the platform commission. The debits are
queued as ledger intents inside the completion transaction and drained
after commit, the same way sale credits are.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Callable, Optional

from application.dto import PageDTO, RefundDTO, RefundRequestDTO, RefundStatsDTO
from application.dtos.payments import RefundRequest
from application.ports.payment_gateway import PaymentGateway
from application.services.wallet_service import WalletSyncService
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import (
    AuthorizationException,
    DomainValidationException,
    InvalidStateTransitionException,
    RefundInProgressException,
    ResourceNotFoundException,
)
from domain.common.money import ZERO, as_decimal
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.earnings.commission import resolve_rate
from domain.earnings.proration import prorate_refund
from domain.order.entity import OrderStatus
from domain.payment.entity import PaymentStatus
from domain.refund.entity import Refund, RefundMethod, RefundStatus
from domain.wallet.entity import LedgerIntent, refund_reference

logger = get_logger(__name__)


def refund_to_dto(refund: Refund) -> RefundDTO:
    return RefundDTO(
        id=refund.id,
        order_id=refund.order_id,
        user_id=refund.user_id,
        amount=refund.amount,
        reason=refund.reason,
        reason_category=refund.reason_category,
        status=refund.status,
        refund_method=refund.refund_method,
        bank_details=refund.bank_details,
        notes=refund.notes,
        provider_refund_id=refund.provider_refund_id,
        processed_at=refund.processed_at,
        completed_at=refund.completed_at,
        created_at=refund.created_at,
    )


class RefundService:
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

    # ---------- student side ----------

    async def request_refund(self, user_id: int, order_id: int, data: RefundRequestDTO) -> RefundDTO:
        amount = as_decimal(data.amount)
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise ResourceNotFoundException("Order", order_id)
            if order.user_id != user_id:
                raise AuthorizationException("You do not have access to this order")
            if order.status != OrderStatus.PAID:
                raise DomainValidationException(
                    "Only paid orders can be refunded",
                    field="order_id",
                    details={"status": order.status.value},
                )
            if amount <= ZERO or amount > order.total_amount:
                raise DomainValidationException(
                    "Refund amount must be greater than 0 and not exceed the order total",
                    field="amount",
                    details={"amount": str(amount), "order_total": str(order.total_amount)},
                )
            if await uow.refund_repository.find_open_for_order(order_id):
                raise RefundInProgressException(order_id)

            refund = await uow.refund_repository.create(
                Refund(
                    id=None,
                    order_id=order_id,
                    user_id=user_id,
                    amount=amount,
                    reason=data.reason,
                    reason_category=data.reason_category,
                    refund_method=data.refund_method,
                    bank_details=data.bank_details,
                    notes=data.notes,
                )
            )
        logger.info("refund_requested", refund_id=refund.id, order_id=order_id, amount=str(amount))
        return refund_to_dto(refund)

    async def request_refund_for_payment(self, user_id: int, payment_id: int, data: RefundRequestDTO) -> RefundDTO:
        """Refund request addressed by payment; resolves to the payment's order."""
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_id(payment_id)
        if payment is None:
            raise ResourceNotFoundException("Payment", payment_id)
        if payment.user_id != user_id:
            raise AuthorizationException("You do not have access to this payment")
        if payment.order_id is None:
            raise DomainValidationException(
                "Refunds are requested per order; this payment has no order",
                field="payment_id",
            )
        return await self.request_refund(user_id, payment.order_id, data)

    async def list_my_refunds(self, user_id: int) -> list[RefundDTO]:
        async with self._uow_factory(readonly=True) as uow:
            refunds = await uow.refund_repository.list_by_user(user_id)
        return [refund_to_dto(r) for r in refunds]

    # ---------- admin side ----------

    async def list_refunds(self, status: Optional[str] = None, limit: int = 20, offset: int = 0) -> PageDTO:
        limit = max(1, min(settings.MAX_PAGE_SIZE, int(limit)))
        offset = max(0, int(offset))
        status_filter = None
        if status:
            try:
                status_filter = RefundStatus(status.upper())
            except ValueError:
                raise DomainValidationException(f"Unknown refund status: {status}", field="status")
        async with self._uow_factory(readonly=True) as uow:
            refunds, total = await uow.refund_repository.list_page(status=status_filter, skip=offset, limit=limit)
        return PageDTO(items=[refund_to_dto(r) for r in refunds], total=total, limit=limit, offset=offset)

    async def get_refund(self, refund_id: int) -> RefundDTO:
        async with self._uow_factory(readonly=True) as uow:
            refund = await uow.refund_repository.get_by_id(refund_id)
        if refund is None:
            raise ResourceNotFoundException("Refund", refund_id)
        return refund_to_dto(refund)

    async def get_stats(self) -> RefundStatsDTO:
        async with self._uow_factory(readonly=True) as uow:
            counts = await uow.refund_repository.count_by_status()
            total_amount = await uow.refund_repository.sum_amount()
            completed_amount = await uow.refund_repository.sum_amount(RefundStatus.COMPLETED)
        return RefundStatsDTO(
            total=sum(counts.values()),
            by_status={status.value: count for status, count in counts.items()},
            total_amount=total_amount,
            completed_amount=completed_amount,
        )

    async def _transition(self, refund_id: int, action: Callable[[Refund], None], event: str) -> RefundDTO:
        async with self._uow_factory() as uow:
            refund = await uow.refund_repository.get_by_id(refund_id)
            if refund is None:
                raise ResourceNotFoundException("Refund", refund_id)
            action(refund)
            refund = await uow.refund_repository.update(refund)
        logger.info(event, refund_id=refund_id, status=refund.status.value)
        return refund_to_dto(refund)

    async def approve(self, refund_id: int, admin_notes: Optional[str] = None) -> RefundDTO:
        return await self._transition(refund_id, lambda r: r.approve(admin_notes), "refund_approved")

    async def reject(self, refund_id: int, reason: str) -> RefundDTO:
        return await self._transition(refund_id, lambda r: r.reject(reason), "refund_rejected")

    async def mark_processing(self, refund_id: int, admin_notes: Optional[str] = None) -> RefundDTO:
        return await self._transition(refund_id, lambda r: r.mark_processing(admin_notes), "refund_processing")

    async def complete(self, refund_id: int, admin_notes: Optional[str] = None) -> RefundDTO:
        async with self._uow_factory(readonly=True) as uow:
            refund = await uow.refund_repository.get_by_id(refund_id)
            if refund is None:
                raise ResourceNotFoundException("Refund", refund_id)
            if not refund.can_transition_to(RefundStatus.COMPLETED):
                raise InvalidStateTransitionException("refund", refund.status.value, RefundStatus.COMPLETED.value)
            order = await uow.order_repository.get_by_id(refund.order_id)
            if order is None:
                raise ResourceNotFoundException("Order", refund.order_id)
            if order.status != OrderStatus.PAID:
                raise DomainValidationException(
                    "Only paid orders can be refunded",
                    field="order_id",
                    details={"status": order.status.value},
                )
            payment = await uow.payment_repository.get_by_order_id(order.id)

        provider_refund_id = await self._refund_with_provider(refund, payment)

        intent_ids: list[int] = []
        async with self._uow_factory() as uow:
            refund = await uow.refund_repository.get_by_id(refund_id)
            refund.complete(admin_notes, provider_refund_id)
            refund = await uow.refund_repository.update(refund)

            order = await uow.order_repository.get_by_id(refund.order_id)
            order.mark_refunded(refund.amount)
            await uow.order_repository.update(order)

            if refund.amount >= order.total_amount:
                if payment is not None and payment.status == PaymentStatus.COMPLETED:
                    payment.mark_refunded()
                    await uow.payment_repository.update(payment)
                deactivated = await uow.enrollment_repository.deactivate(order.user_id, order.package_ids)
                logger.info("refund_enrollments_deactivated", order_id=order.id, count=deactivated)

            listings = await uow.catalog_repository.get_packages(order.package_ids)
            rates = {
                package_id: resolve_rate(listing.commission_rate, self._default_rate)
                for package_id, listing in listings.items()
                if listing.teacher is not None
            }
            shares = prorate_refund(order.items, refund.amount, fallback_total=order.total_amount, rates=rates)
            for share in shares:
                if share.teacher_net is None or share.teacher_net <= ZERO:
                    continue
                teacher = listings[share.package_id].teacher
                intent = await uow.outbox_repository.add(
                    LedgerIntent.debit(
                        teacher.user_id,
                        share.teacher_net,
                        refund_reference(refund.id, share.order_item_id),
                        {
                            "refundId": refund.id,
                            "orderId": order.id,
                            "orderNo": order.order_no,
                            "orderItemId": share.order_item_id,
                            "packageId": share.package_id,
                            "itemRefundShare": str(share.share),
                            "commissionRate": str(rates[share.package_id]),
                        },
                    )
                )
                intent_ids.append(intent.id)

        logger.info(
            "refund_completed",
            refund_id=refund.id,
            order_id=refund.order_id,
            amount=str(refund.amount),
            debits=len(intent_ids),
        )
        if intent_ids:
            await self._wallet_sync.process_intents(ids=intent_ids)
        return refund_to_dto(refund)

    async def _refund_with_provider(self, refund: Refund, payment) -> Optional[str]:
        """Issue the provider refund first; provider errors abort completion."""
        if refund.refund_method != RefundMethod.ORIGINAL_PAYMENT:
            return None
        if self._gateway is None or payment is None or not payment.provider_ref:
            logger.info("refund_provider_skipped", refund_id=refund.id)
            return None
        result = await self._gateway.refund(
            RefundRequest(
                charge_id=payment.provider_ref,
                amount=refund.amount,
                currency=payment.currency,
                reason=refund.reason,
                idempotency_key=f"refund-{refund.id}",
            )
        )
        logger.info("refund_provider_issued", refund_id=refund.id, provider_refund_id=result.refund_id)
        return result.refund_id
