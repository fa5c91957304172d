"""
Wallet application services.

``WalletSyncService`` drains ledger intents (the wallet outbox) into wallets.
Intents are written in the same transaction as the sale or refund that caused
them, so a crash between commit and posting leaves a PENDING row that the
next drain (inline after commit, or the periodic Celery task) picks up.
Posting is idempotent on ``reference_id``.

``WalletService`` is the read side used by the wallet routes.
"""
from __future__ import annotations

from typing import Callable, Optional, Sequence

from application.dto import OutboxReportDTO, PageDTO, WalletDTO, WalletTransactionDTO
from core.config import settings
from core.logging_config import get_logger
from domain.common.money import ZERO
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.wallet.entity import (
    IntentStatus,
    TransactionSource,
    TransactionType,
    Wallet,
    WalletTransaction,
)
from domain.wallet.service import WalletLedger

logger = get_logger(__name__)

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 100


def _parse_enum(enum_cls, value: Optional[str]):
    """Unknown filter values are ignored rather than rejected."""
    if not value:
        return None
    try:
        return enum_cls(value.upper())
    except ValueError:
        return None


class WalletSyncService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        currency: Optional[str] = None,
        max_attempts: Optional[int] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._currency = currency or settings.commerce.currency
        self._max_attempts = max_attempts or settings.commerce.outbox_max_attempts
        self._batch_size = batch_size or settings.commerce.outbox_batch_size

    async def process_intents(
        self,
        ids: Optional[Sequence[int]] = None,
        limit: Optional[int] = None,
    ) -> OutboxReportDTO:
        """Post PENDING intents, each in its own transaction."""
        async with self._uow_factory(readonly=True) as uow:
            pending = await uow.outbox_repository.list_ids(
                IntentStatus.PENDING,
                ids=ids,
                limit=limit or self._batch_size,
            )

        report = OutboxReportDTO()
        for intent_id in pending:
            report.processed += 1
            if await self._process_one(intent_id):
                report.succeeded += 1
            else:
                report.failed += 1
                report.failed_ids.append(intent_id)

        if report.processed:
            logger.info(
                "wallet_outbox_drained",
                processed=report.processed,
                succeeded=report.succeeded,
                failed=report.failed,
            )
        return report

    async def _process_one(self, intent_id: int) -> bool:
        try:
            async with self._uow_factory() as uow:
                intent = await uow.outbox_repository.get(intent_id)
                if intent is None or intent.status != IntentStatus.PENDING:
                    return True
                ledger = WalletLedger(uow.wallet_repository, currency=self._currency)
                posting = await ledger.apply_intent(intent)
                intent.mark_done()
                await uow.outbox_repository.update(intent)
        except Exception as exc:
            logger.error(
                "wallet_outbox_failed",
                intent_id=intent_id,
                error=str(exc),
                exc_info=True,
            )
            await self._record_failure(intent_id, exc)
            return False

        if posting is None:
            logger.info("wallet_intent_skipped", intent_id=intent_id, reference_id=intent.reference_id)
        elif posting.duplicate:
            logger.info("wallet_posting_deduplicated", intent_id=intent_id, reference_id=intent.reference_id)
        else:
            logger.info(
                "wallet_credit_posted" if intent.direction == TransactionType.CREDIT else "wallet_debit_posted",
                intent_id=intent_id,
                owner_id=intent.owner_id,
                amount=str(intent.amount),
                reference_id=intent.reference_id,
                balance=str(posting.balance),
            )
        return True

    async def _record_failure(self, intent_id: int, exc: Exception) -> None:
        try:
            async with self._uow_factory() as uow:
                intent = await uow.outbox_repository.get(intent_id)
                if intent is None:
                    return
                intent.record_failure(f"{type(exc).__name__}: {exc}", self._max_attempts)
                await uow.outbox_repository.update(intent)
            if intent.status == IntentStatus.FAILED:
                logger.error(
                    "wallet_intent_gave_up",
                    intent_id=intent_id,
                    attempts=intent.attempts,
                    reference_id=intent.reference_id,
                )
        except Exception:
            # The intent stays PENDING and is retried on the next drain.
            logger.exception("wallet_outbox_failure_not_recorded", intent_id=intent_id)

    async def retry_failed(self) -> int:
        """Move FAILED intents back to PENDING so the next drain retries them."""
        async with self._uow_factory() as uow:
            count = await uow.outbox_repository.reset_failed()
        logger.info("wallet_outbox_failed_reset", count=count)
        return count


class WalletService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], *, currency: Optional[str] = None) -> None:
        self._uow_factory = uow_factory
        self._currency = currency or settings.commerce.currency

    @staticmethod
    def _wallet_dto(wallet: Wallet) -> WalletDTO:
        return WalletDTO(
            owner_id=wallet.owner_id,
            available_balance=wallet.available_balance,
            pending_payout=wallet.pending_payout,
            currency=wallet.currency,
        )

    @staticmethod
    def _transaction_dto(tx: WalletTransaction) -> WalletTransactionDTO:
        return WalletTransactionDTO(
            id=tx.id,
            amount=tx.amount,
            type=tx.type.value,
            source=tx.source.value,
            reference_id=tx.reference_id,
            metadata=tx.metadata,
            created_at=tx.created_at,
        )

    async def get_summary(self, owner_id: int) -> WalletDTO:
        """Wallet balance; the wallet is created on first access."""
        async with self._uow_factory() as uow:
            ledger = WalletLedger(uow.wallet_repository, currency=self._currency)
            wallet = await ledger.ensure_wallet(owner_id)
        return self._wallet_dto(wallet)

    async def list_transactions(
        self,
        owner_id: int,
        *,
        limit: int = 20,
        offset: int = 0,
        type: Optional[str] = None,
        source: Optional[str] = None,
    ) -> PageDTO:
        limit = max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, int(limit)))
        offset = max(0, int(offset))
        tx_type = _parse_enum(TransactionType, type)
        tx_source = _parse_enum(TransactionSource, source)

        async with self._uow_factory() as uow:
            ledger = WalletLedger(uow.wallet_repository, currency=self._currency)
            wallet = await ledger.ensure_wallet(owner_id)
            items, total = await uow.wallet_repository.list_transactions(
                wallet.id,
                limit=limit,
                offset=offset,
                type=tx_type,
                source=tx_source,
            )
        return PageDTO(
            items=[self._transaction_dto(tx) for tx in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def balance_matches_ledger(self, owner_id: int) -> bool:
        """Check the stored balance against the signed sum of the wallet's transactions."""
        async with self._uow_factory(readonly=True) as uow:
            wallet = await uow.wallet_repository.get_by_owner(owner_id)
            if wallet is None:
                return True
            items, _ = await uow.wallet_repository.list_transactions(wallet.id, limit=10**9, offset=0)
        ledger_sum = sum((tx.signed_amount for tx in items), ZERO)
        return ledger_sum == wallet.available_balance
