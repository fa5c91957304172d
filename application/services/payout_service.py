"""
Teacher payouts: payout methods, payout requests and admin review.

A payout request moves the amount from ``available_balance`` to
``pending_payout`` and records a PAYOUT debit in the same transaction, so a
request can never exceed the balance at the time it is made. Rejecting a
request posts a REVERSAL credit that restores the balance; marking it paid
only clears ``pending_payout``.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dto import (
    PageDTO,
    PayoutDTO,
    PayoutMethodCreateDTO,
    PayoutMethodDTO,
    PayoutMethodUpdateDTO,
    PayoutRequestCreateDTO,
)
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException, ResourceNotFoundException
from domain.common.money import ZERO, as_decimal
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payout.entity import (
    PayoutMethod,
    PayoutMethodType,
    PayoutRequest,
    PayoutStatus,
)
from domain.wallet.service import WalletLedger

logger = get_logger(__name__)


def _method_dto(method: PayoutMethod) -> PayoutMethodDTO:
    return PayoutMethodDTO(
        id=method.id,
        type=method.type.value,
        label=method.label,
        details=method.details,
        is_default=method.is_default,
        is_verified=method.is_verified,
        created_at=method.created_at,
    )


def _payout_dto(payout: PayoutRequest) -> PayoutDTO:
    return PayoutDTO(
        id=payout.id,
        wallet_id=payout.wallet_id,
        amount=payout.amount,
        method_id=payout.method_id,
        status=payout.status.value,
        note=payout.note,
        admin_note=payout.admin_note,
        external_reference=payout.external_reference,
        requested_at=payout.requested_at,
        processed_at=payout.processed_at,
    )


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _page_bounds(limit: int, offset: int) -> tuple[int, int]:
    return max(1, min(settings.MAX_PAGE_SIZE, int(limit))), max(0, int(offset))


class PayoutService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], *, currency: Optional[str] = None) -> None:
        self._uow_factory = uow_factory
        self._currency = currency or settings.commerce.currency

    # ---------- payout methods ----------

    async def add_payout_method(self, owner_id: int, data: PayoutMethodCreateDTO) -> PayoutMethodDTO:
        try:
            method_type = PayoutMethodType((data.type or "").strip().upper())
        except ValueError:
            valid = ", ".join(t.value for t in PayoutMethodType)
            raise DomainValidationException(
                f"Invalid payout method type. Must be one of: {valid}",
                field="type",
            )

        async with self._uow_factory() as uow:
            wallet = await WalletLedger(uow.wallet_repository, currency=self._currency).ensure_wallet(owner_id)
            if data.is_default:
                await uow.payout_method_repository.clear_default(wallet.id)
            method = await uow.payout_method_repository.add(
                PayoutMethod(
                    id=None,
                    wallet_id=wallet.id,
                    type=method_type,
                    label=data.label,
                    details=data.details,
                    is_default=data.is_default,
                )
            )
        logger.info("payout_method_added", owner_id=owner_id, method_id=method.id, type=method_type.value)
        return _method_dto(method)

    async def list_payout_methods(self, owner_id: int) -> list[PayoutMethodDTO]:
        async with self._uow_factory() as uow:
            wallet = await WalletLedger(uow.wallet_repository, currency=self._currency).ensure_wallet(owner_id)
            methods = await uow.payout_method_repository.list_by_wallet(wallet.id)
        return [_method_dto(m) for m in methods]

    async def _owned_method(self, uow: AbstractUnitOfWork, owner_id: int, method_id: int) -> PayoutMethod:
        wallet = await WalletLedger(uow.wallet_repository, currency=self._currency).ensure_wallet(owner_id)
        method = await uow.payout_method_repository.get(method_id)
        if method is None or method.wallet_id != wallet.id:
            raise ResourceNotFoundException("Payout method", method_id)
        return method

    async def update_payout_method(
        self, owner_id: int, method_id: int, data: PayoutMethodUpdateDTO
    ) -> PayoutMethodDTO:
        async with self._uow_factory() as uow:
            method = await self._owned_method(uow, owner_id, method_id)
            label = _clean(data.label)
            if label:
                method.label = label
            if data.details is not None:
                method.details = data.details
            if data.is_default:
                await uow.payout_method_repository.clear_default(method.wallet_id)
            if data.is_default is not None:
                method.is_default = data.is_default
            method = await uow.payout_method_repository.update(method)
        logger.info("payout_method_updated", owner_id=owner_id, method_id=method_id)
        return _method_dto(method)

    async def delete_payout_method(self, owner_id: int, method_id: int) -> None:
        async with self._uow_factory() as uow:
            await self._owned_method(uow, owner_id, method_id)
            await uow.payout_method_repository.delete(method_id)
        logger.info("payout_method_deleted", owner_id=owner_id, method_id=method_id)

    # ---------- payout requests ----------

    async def request_payout(self, owner_id: int, data: PayoutRequestCreateDTO) -> PayoutDTO:
        """Reserve ``amount`` for payout; fails with Insufficient balance when not covered."""
        amount = as_decimal(data.amount)
        if amount <= ZERO:
            raise DomainValidationException("Invalid amount", field="amount")

        async with self._uow_factory() as uow:
            ledger = WalletLedger(uow.wallet_repository, currency=self._currency)
            wallet = await ledger.ensure_wallet(owner_id)

            if data.method_id is not None:
                method = await uow.payout_method_repository.get(data.method_id)
                if method is None or method.wallet_id != wallet.id:
                    raise DomainValidationException("Invalid payout method", field="method_id")
            else:
                method = await uow.payout_method_repository.find_default(wallet.id)

            note = _clean(data.note)
            payout = await uow.payout_repository.create(
                PayoutRequest(
                    id=None,
                    wallet_id=wallet.id,
                    amount=amount,
                    method_id=method.id if method else None,
                    note=note,
                )
            )
            posting = await ledger.hold_for_payout(owner_id, payout.id, amount, {"payoutId": payout.id, "note": note})

        logger.info(
            "payout_requested",
            owner_id=owner_id,
            payout_id=payout.id,
            amount=str(amount),
            balance=str(posting.balance),
        )
        return _payout_dto(payout)

    async def list_my_payouts(self, owner_id: int, *, limit: int = 20, offset: int = 0) -> PageDTO:
        limit, offset = _page_bounds(limit, offset)
        async with self._uow_factory() as uow:
            wallet = await WalletLedger(uow.wallet_repository, currency=self._currency).ensure_wallet(owner_id)
            payouts, total = await uow.payout_repository.list_page(wallet_id=wallet.id, skip=offset, limit=limit)
        return PageDTO(items=[_payout_dto(p) for p in payouts], total=total, limit=limit, offset=offset)

    # ---------- admin review ----------

    async def list_payout_requests(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> PageDTO:
        """Unknown status filters are ignored."""
        limit, offset = _page_bounds(limit, offset)
        status_filter = None
        if status:
            try:
                status_filter = PayoutStatus(status.strip().upper())
            except ValueError:
                status_filter = None
        async with self._uow_factory(readonly=True) as uow:
            payouts, total = await uow.payout_repository.list_page(status=status_filter, skip=offset, limit=limit)
        return PageDTO(items=[_payout_dto(p) for p in payouts], total=total, limit=limit, offset=offset)

    async def _review(self, payout_id: int, action: Callable[[PayoutRequest], None], event: str) -> PayoutDTO:
        async with self._uow_factory() as uow:
            payout = await uow.payout_repository.get_by_id(payout_id)
            if payout is None:
                raise ResourceNotFoundException("Payout request", payout_id)
            action(payout)

            wallet = await uow.wallet_repository.get_by_id(payout.wallet_id)
            if wallet is None:
                raise ResourceNotFoundException("Wallet", payout.wallet_id)
            ledger = WalletLedger(uow.wallet_repository, currency=self._currency)
            if payout.status == PayoutStatus.REJECTED:
                await ledger.release_payout(wallet.owner_id, payout.id, payout.amount)
            elif payout.status == PayoutStatus.PAID:
                await ledger.settle_payout(wallet.owner_id, payout.amount)
            payout = await uow.payout_repository.update(payout)

        logger.info(event, payout_id=payout_id, status=payout.status.value, owner_id=wallet.owner_id)
        return _payout_dto(payout)

    async def approve(self, payout_id: int, admin_note: Optional[str] = None) -> PayoutDTO:
        return await self._review(payout_id, lambda p: p.approve(admin_note), "payout_approved")

    async def mark_processing(self, payout_id: int, admin_note: Optional[str] = None) -> PayoutDTO:
        return await self._review(payout_id, lambda p: p.mark_processing(admin_note), "payout_processing")

    async def reject(self, payout_id: int, admin_note: Optional[str] = None) -> PayoutDTO:
        return await self._review(payout_id, lambda p: p.reject(admin_note), "payout_rejected")

    async def mark_paid(
        self,
        payout_id: int,
        admin_note: Optional[str] = None,
        external_reference: Optional[str] = None,
    ) -> PayoutDTO:
        return await self._review(
            payout_id,
            lambda p: p.mark_paid(admin_note, external_reference),
            "payout_paid",
        )
