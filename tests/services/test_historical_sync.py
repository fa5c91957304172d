import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from application.services.historical_sync_service import HistoricalSyncService, _TeacherTotals
from application.services.wallet_service import WalletService
from domain.order.entity import Order, OrderItem
from domain.payment.entity import Payment, PaymentStatus
from domain.refund.entity import Refund, RefundStatus
from domain.wallet.entity import HIST_SYNC_REFERENCE
from infrastructure.database import Database
from scripts import sync_historical_earnings

STUDENT = 1
TEACHER_A = 500
TEACHER_B = 501
TEACHER_C = 502

JAN = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)
FEB = datetime(2025, 2, 10, 9, 0, tzinfo=timezone.utc)


async def _completed(uow, payment: Payment, paid_at: datetime) -> Payment:
    return await uow.payment_repository.create(replace(payment, status=PaymentStatus.COMPLETED, paid_at=paid_at))


async def _paid_order(uow, prices: dict[int, str], earning: str, refunded: str = None) -> Order:
    items = [
        OrderItem(id=None, package_id=pid, price=Decimal(p), discount=Decimal("0"), final_price=Decimal(p))
        for pid, p in prices.items()
    ]
    order = await uow.order_repository.create(Order.from_items(STUDENT, items))
    order.mark_paid(FEB)
    order = await uow.order_repository.update(order)
    await _completed(
        uow,
        Payment.for_order(
            user_id=STUDENT,
            order_id=order.id,
            amount=order.total_amount,
            platform_commission=order.total_amount - Decimal(earning),
            teacher_earning=Decimal(earning),
        ),
        FEB,
    )
    if refunded:
        await uow.refund_repository.create(
            Refund(
                id=None,
                order_id=order.id,
                user_id=STUDENT,
                amount=Decimal(refunded),
                reason="historical",
                status=RefundStatus.COMPLETED,
            )
        )
    return order


@pytest.fixture
def history(uow_factory, seed):
    """
    A: direct sale 100 (earning 90) + order item 100 at 10%
    B: order item 50 at 0%, same order refunded 75 of 150
    C: order fully refunded
    """

    async def _make():
        _, _, pkg_a = await seed.listing(TEACHER_A, "100")
        _, _, pkg_b = await seed.listing(TEACHER_B, "50", commission_rate="0")
        _, _, pkg_c = await seed.listing(TEACHER_C, "40")
        async with uow_factory() as uow:
            await _completed(
                uow,
                Payment.for_package(
                    user_id=STUDENT,
                    package_id=pkg_a,
                    amount=Decimal("100"),
                    platform_commission=Decimal("10"),
                    teacher_earning=Decimal("90"),
                ),
                JAN,
            )
            await _paid_order(uow, {pkg_a: "100", pkg_b: "50"}, "140", refunded="75")
            await _paid_order(uow, {pkg_c: "40"}, "36", refunded="40")

    return _make


def _by_owner(report):
    return {t.owner_id: t for t in report.teachers}


@pytest.mark.asyncio
async def test_collect_nets_out_completed_refunds(uow_factory, history):
    await history()
    scanned, totals = await HistoricalSyncService(uow_factory, default_rate=Decimal("10")).collect()

    assert scanned == 3
    by_owner = {t.owner_id: t for t in totals}
    a = by_owner[TEACHER_A]
    assert (a.gross, a.refunded_portion, a.net) == (Decimal("180"), Decimal("45"), Decimal("135"))
    assert len(a.payment_ids) == 2
    assert (a.first_paid_at, a.last_paid_at) == (JAN, FEB)
    assert by_owner[TEACHER_B].net == Decimal("25")
    assert by_owner[TEACHER_C].net == Decimal("0")


@pytest.mark.asyncio
async def test_dry_run_writes_nothing(uow_factory, history):
    await history()
    report = await HistoricalSyncService(uow_factory, default_rate=Decimal("10")).run(dry_run=True)

    statuses = {owner: t.status for owner, t in _by_owner(report).items()}
    assert statuses == {TEACHER_A: "would_sync", TEACHER_B: "would_sync", TEACHER_C: "skipped"}
    assert report.wallets_synced == 0
    assert report.total_net == Decimal("160")
    async with uow_factory(readonly=True) as uow:
        assert await uow.wallet_repository.get_by_owner(TEACHER_A) is None


@pytest.mark.asyncio
async def test_sync_credits_once(uow_factory, history):
    await history()
    service = HistoricalSyncService(uow_factory, default_rate=Decimal("10"))
    wallets = WalletService(uow_factory)

    first = await service.run()
    assert first.wallets_synced == 2
    assert first.errors == 0
    assert (await wallets.get_summary(TEACHER_A)).available_balance == Decimal("135")
    assert (await wallets.get_summary(TEACHER_B)).available_balance == Decimal("25")

    [tx] = (await wallets.list_transactions(TEACHER_A)).items
    assert tx.reference_id == HIST_SYNC_REFERENCE
    assert tx.metadata["syncedFrom"] == "historical_payments"
    assert tx.metadata["paymentCount"] == 2
    assert Decimal(tx.metadata["gross"]) == Decimal("180")
    assert Decimal(tx.metadata["refundedPortion"]) == Decimal("45")

    second = await service.run()
    assert second.wallets_synced == 0
    assert {t.status for t in second.teachers if t.owner_id != TEACHER_C} == {"already_synced"}
    assert (await wallets.get_summary(TEACHER_A)).available_balance == Decimal("135")
    assert (await wallets.list_transactions(TEACHER_A)).total == 1

    dry = await service.run(dry_run=True)
    assert _by_owner(dry)[TEACHER_B].status == "already_synced"


@pytest.mark.asyncio
async def test_nothing_to_sync(uow_factory):
    report = await HistoricalSyncService(uow_factory).run()

    assert report.payments_scanned == 0
    assert report.teachers == []
    assert report.total_net == Decimal("0")


async def _create_schema(url: str) -> None:
    async with Database(url) as db:
        await db.create_tables()


def test_script_exit_codes(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'script.db'}"
    # no schema yet
    assert sync_historical_earnings.main(["--database-url", url]) == 1

    asyncio.run(_create_schema(url))
    assert sync_historical_earnings.main(["--dry-run", "--database-url", url]) == 0
    assert sync_historical_earnings.main(["--database-url", url]) == 0


def test_teacher_totals_accumulate_independently():
    first = _TeacherTotals(teacher_profile_id=1, owner_id=TEACHER_A)
    second = _TeacherTotals(teacher_profile_id=2, owner_id=TEACHER_B)

    first.add(7, Decimal("90"), Decimal("0.5"), FEB)
    first.add(7, Decimal("10"), Decimal("0"), JAN)

    assert first.payment_ids == {7}
    assert second.payment_ids == set()
    assert first.gross == Decimal("100")
    assert first.refunded_portion == Decimal("45")
    assert first.net == Decimal("55")
    assert (first.first_paid_at, first.last_paid_at) == (JAN, FEB)
