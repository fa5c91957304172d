"""
One-off backfill of teacher wallets from historical completed payments.

Each teacher receives at most one ``HIST_SYNC_V1`` credit. The credited
amount is the teacher's earnings net of completed refunds, where a payment
whose order has completed refunds keeps ``1 - min(1, refunded / order_total)``
of its teacher earning. Re-running is safe: teachers whose wallet already
carries the reference are skipped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from application.dto import HistoricalSyncReportDTO, TeacherSyncDTO
from core.config import settings
from core.logging_config import get_logger
from domain.common.money import ONE, ZERO
from domain.common.timeutil import utcnow
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.earnings.entries import normalize_earnings
from domain.wallet.entity import HIST_SYNC_REFERENCE, TransactionSource
from domain.wallet.service import WalletLedger

logger = get_logger(__name__)


@dataclass
class _TeacherTotals:
    teacher_profile_id: int
    owner_id: int
    gross: Decimal = ZERO
    refunded_portion: Decimal = ZERO
    net: Decimal = ZERO
    payment_ids: set[int] = field(default_factory=set)
    first_paid_at: Optional[datetime] = None
    last_paid_at: Optional[datetime] = None

    def add(self, payment_id: int, earning: Decimal, ratio: Decimal, paid_at: Optional[datetime]) -> None:
        adjusted = max(ZERO, earning * (ONE - ratio))
        self.gross += earning
        self.refunded_portion += max(ZERO, earning - adjusted)
        self.net += adjusted
        self.payment_ids.add(payment_id)
        if paid_at is not None:
            if self.first_paid_at is None or paid_at < self.first_paid_at:
                self.first_paid_at = paid_at
            if self.last_paid_at is None or paid_at > self.last_paid_at:
                self.last_paid_at = paid_at

    def metadata(self) -> dict:
        return {
            "syncedFrom": "historical_payments",
            "version": "v1",
            "paymentCount": len(self.payment_ids),
            "gross": str(self.gross),
            "refundedPortion": str(self.refunded_portion),
            "net": str(self.net),
            "firstPaymentDate": self.first_paid_at.isoformat() if self.first_paid_at else None,
            "lastPaymentDate": self.last_paid_at.isoformat() if self.last_paid_at else None,
            "syncedAt": utcnow().isoformat(),
        }

    def to_dto(self, status: str, error: Optional[str] = None) -> TeacherSyncDTO:
        return TeacherSyncDTO(
            teacher_profile_id=self.teacher_profile_id,
            owner_id=self.owner_id,
            payment_count=len(self.payment_ids),
            gross=self.gross,
            refunded_portion=self.refunded_portion,
            net=self.net,
            status=status,
            error=error,
        )


class HistoricalSyncService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        default_rate: Optional[Decimal] = None,
        currency: Optional[str] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._default_rate = settings.commerce.platform_commission_rate if default_rate is None else default_rate
        self._currency = currency or settings.commerce.currency

    async def collect(self) -> tuple[int, list[_TeacherTotals]]:
        """Aggregate net historical earnings per teacher."""
        async with self._uow_factory(readonly=True) as uow:
            payments = await uow.payment_repository.list_completed_with_paid_at()
            order_ids = {p.order_id for p in payments if p.order_id is not None}
            orders = await uow.order_repository.get_many(order_ids)
            refunded = await uow.refund_repository.completed_totals_by_order(order_ids)
            package_ids = {p.package_id for p in payments if p.package_id is not None}
            for order in orders.values():
                package_ids.update(order.package_ids)
            listings = await uow.catalog_repository.get_packages(package_ids)

        totals: dict[int, _TeacherTotals] = {}
        for payment in payments:
            order = orders.get(payment.order_id) if payment.order_id is not None else None
            if payment.is_order_payment and order is None:
                logger.warning("historical_sync_order_missing", payment_id=payment.id, order_id=payment.order_id)
                continue

            ratio = ZERO
            if order is not None and order.total_amount > ZERO:
                refunded_total = refunded.get(order.id, ZERO)
                if refunded_total > ZERO:
                    ratio = min(ONE, refunded_total / order.total_amount)

            for entry in normalize_earnings(payment, order=order, listings=listings, default_rate=self._default_rate):
                listing = listings[entry.package_id]
                bucket = totals.get(entry.teacher_profile_id)
                if bucket is None:
                    bucket = totals[entry.teacher_profile_id] = _TeacherTotals(
                        teacher_profile_id=entry.teacher_profile_id,
                        owner_id=listing.teacher.user_id,
                    )
                bucket.add(payment.id, entry.teacher_earning, ratio, entry.paid_at)

        return len(payments), list(totals.values())

    async def run(self, *, dry_run: bool = False) -> HistoricalSyncReportDTO:
        scanned, teachers = await self.collect()
        logger.info("historical_sync_collected", payments=scanned, teachers=len(teachers), dry_run=dry_run)

        report = HistoricalSyncReportDTO(dry_run=dry_run, payments_scanned=scanned, teachers=[])
        for totals in teachers:
            if totals.net <= ZERO:
                report.teachers.append(totals.to_dto("skipped"))
                continue
            try:
                status = await self._sync_teacher(totals, dry_run=dry_run)
            except Exception as exc:
                logger.error(
                    "historical_sync_teacher_failed",
                    teacher_profile_id=totals.teacher_profile_id,
                    error=str(exc),
                    exc_info=True,
                )
                report.errors += 1
                report.teachers.append(totals.to_dto("error", f"{type(exc).__name__}: {exc}"))
                continue

            report.teachers.append(totals.to_dto(status))
            if status in ("synced", "would_sync"):
                report.total_net += totals.net
            if status == "synced":
                report.wallets_synced += 1

        logger.info(
            "historical_sync_finished",
            dry_run=dry_run,
            wallets_synced=report.wallets_synced,
            total_net=str(report.total_net),
            errors=report.errors,
        )
        return report

    async def _sync_teacher(self, totals: _TeacherTotals, *, dry_run: bool) -> str:
        if dry_run:
            async with self._uow_factory(readonly=True) as uow:
                wallet = await uow.wallet_repository.get_by_owner(totals.owner_id)
                if wallet is not None and await uow.wallet_repository.find_transaction(wallet.id, HIST_SYNC_REFERENCE):
                    return "already_synced"
            return "would_sync"

        async with self._uow_factory() as uow:
            ledger = WalletLedger(uow.wallet_repository, currency=self._currency)
            posting = await ledger.credit_for_teacher(
                totals.owner_id,
                totals.net,
                totals.metadata(),
                reference_id=HIST_SYNC_REFERENCE,
                source=TransactionSource.COURSE_SALE,
            )
        if posting.duplicate:
            logger.info("historical_sync_already_applied", owner_id=totals.owner_id)
            return "already_synced"
        logger.info(
            "historical_sync_credited",
            owner_id=totals.owner_id,
            net=str(totals.net),
            balance=str(posting.balance),
        )
        return "synced"
