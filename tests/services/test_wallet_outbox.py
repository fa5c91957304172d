from decimal import Decimal

import pytest

from application.services.checkout_service import CheckoutService
from application.services.payment_confirmation_service import PaymentConfirmationService
from application.services.wallet_service import WalletService, WalletSyncService
from domain.common.exceptions import DomainValidationException, InsufficientBalanceException
from domain.payment.entity import PaymentStatus
from domain.wallet.entity import IntentStatus, LedgerIntent, TransactionSource
from domain.wallet.service import WalletLedger

STUDENT = 1
TEACHER = 500


def _broken_ledger(monkeypatch):
    async def boom(self, intent):
        raise RuntimeError("ledger offline")

    monkeypatch.setattr(WalletLedger, "apply_intent", boom)


async def _buy(uow_factory, gateway, seed, wallet_sync, price="100"):
    _, _, package_id = await seed.listing(TEACHER, price)
    intent = await CheckoutService(uow_factory, gateway, default_rate=Decimal("10")).create_package_intent(
        STUDENT, package_id
    )
    confirm = PaymentConfirmationService(uow_factory, gateway, wallet_sync)
    return await confirm.confirm(STUDENT, intent.payment_id, intent.payment_intent_id)


async def _intents(uow_factory, status):
    async with uow_factory(readonly=True) as uow:
        ids = await uow.outbox_repository.list_ids(status)
        return [await uow.outbox_repository.get(i) for i in ids]


@pytest.mark.asyncio
async def test_drain_failure_does_not_fail_confirmation(uow_factory, gateway, seed, monkeypatch):
    wallet_sync = WalletSyncService(uow_factory, max_attempts=3)
    wallets = WalletService(uow_factory)
    _broken_ledger(monkeypatch)

    result = await _buy(uow_factory, gateway, seed, wallet_sync)
    assert result.status == PaymentStatus.COMPLETED.value

    [intent] = await _intents(uow_factory, IntentStatus.PENDING)
    assert intent.attempts == 1
    assert "RuntimeError: ledger offline" in intent.last_error
    assert (await wallets.get_summary(TEACHER)).available_balance == Decimal("0")

    monkeypatch.undo()
    report = await wallet_sync.process_intents()
    assert (report.processed, report.succeeded, report.failed) == (1, 1, 0)
    assert (await wallets.get_summary(TEACHER)).available_balance == Decimal("90")

    again = await wallet_sync.process_intents()
    assert again.processed == 0
    assert (await wallets.list_transactions(TEACHER)).total == 1


@pytest.mark.asyncio
async def test_intent_gives_up_after_max_attempts(uow_factory, gateway, seed, monkeypatch):
    wallet_sync = WalletSyncService(uow_factory, max_attempts=2)
    _broken_ledger(monkeypatch)
    await _buy(uow_factory, gateway, seed, wallet_sync)

    report = await wallet_sync.process_intents()
    assert report.failed == 1
    [failed] = await _intents(uow_factory, IntentStatus.FAILED)
    assert failed.attempts == 2
    assert (await wallet_sync.process_intents()).processed == 0

    monkeypatch.undo()
    assert await wallet_sync.retry_failed() == 1
    report = await wallet_sync.process_intents()
    assert report.succeeded == 1
    [done] = await _intents(uow_factory, IntentStatus.DONE)
    assert done.processed_at is not None
    assert done.last_error is None


@pytest.mark.asyncio
async def test_posting_is_idempotent_on_reference(uow_factory):
    async with uow_factory() as uow:
        intent = await uow.outbox_repository.add(LedgerIntent.credit(TEACHER, Decimal("12.5"), "SALE:77", {}))
        ledger = WalletLedger(uow.wallet_repository)
        await ledger.credit_for_teacher(TEACHER, Decimal("12.5"), reference_id="SALE:77")

    report = await WalletSyncService(uow_factory).process_intents(ids=[intent.id])
    assert report.succeeded == 1
    [done] = await _intents(uow_factory, IntentStatus.DONE)
    assert done.id == intent.id

    wallets = WalletService(uow_factory)
    assert (await wallets.get_summary(TEACHER)).available_balance == Decimal("12.5")
    assert (await wallets.list_transactions(TEACHER)).total == 1


@pytest.mark.asyncio
async def test_ledger_amount_rules(uow_factory):
    async with uow_factory() as uow:
        ledger = WalletLedger(uow.wallet_repository)
        assert await ledger.credit_for_teacher(TEACHER, Decimal("0")) is None
        assert await ledger.debit_for_refund(TEACHER, Decimal("0")) is None
        with pytest.raises(DomainValidationException):
            await ledger.debit_for_refund(TEACHER, Decimal("-1"))
        await ledger.credit_for_teacher(TEACHER, Decimal("10"), reference_id="SALE:1")

    with pytest.raises(InsufficientBalanceException) as exc_info:
        async with uow_factory() as uow:
            await WalletLedger(uow.wallet_repository).debit_for_refund(TEACHER, Decimal("25"), reference_id="REFUND:1:1")
    assert Decimal(exc_info.value.details["available"]) == Decimal("10")

    wallets = WalletService(uow_factory)
    assert (await wallets.get_summary(TEACHER)).available_balance == Decimal("10")
    assert (await wallets.list_transactions(TEACHER, type="DEBIT")).total == 0

    async with uow_factory() as uow:
        posting = await WalletLedger(uow.wallet_repository).debit_for_refund(
            TEACHER, Decimal("10"), reference_id="REFUND:1:1"
        )
    assert posting.balance == Decimal("0")
    assert await wallets.balance_matches_ledger(TEACHER)


@pytest.mark.asyncio
async def test_refund_debit_waits_in_outbox_until_funds_arrive(uow_factory):
    async with uow_factory() as uow:
        debit = await uow.outbox_repository.add(LedgerIntent.debit(TEACHER, Decimal("30"), "REFUND:4:1", {}))

    wallet_sync = WalletSyncService(uow_factory, max_attempts=5)
    report = await wallet_sync.process_intents()
    assert report.failed_ids == [debit.id]
    [pending] = await _intents(uow_factory, IntentStatus.PENDING)
    assert pending.attempts == 1
    assert pending.last_error.startswith("InsufficientBalanceException")

    async with uow_factory() as uow:
        await WalletLedger(uow.wallet_repository).credit_for_teacher(TEACHER, Decimal("50"), reference_id="SALE:4")

    assert (await wallet_sync.process_intents()).succeeded == 1
    assert (await WalletService(uow_factory).get_summary(TEACHER)).available_balance == Decimal("20")


@pytest.mark.asyncio
async def test_transaction_listing_filters_and_clamps(uow_factory):
    async with uow_factory() as uow:
        ledger = WalletLedger(uow.wallet_repository)
        for n in range(3):
            await ledger.credit_for_teacher(TEACHER, Decimal("5"), reference_id=f"SALE:{n}")
        await ledger.debit_for_refund(TEACHER, Decimal("2"), reference_id="REFUND:9:9")
        await ledger.credit_for_teacher(
            TEACHER, Decimal("1"), reference_id="ADJ:1", source=TransactionSource.ADMIN_ADJUSTMENT
        )

    wallets = WalletService(uow_factory)
    page = await wallets.list_transactions(TEACHER, limit=0)
    assert page.limit == 1
    assert page.total == 5
    assert len(page.items) == 1

    page = await wallets.list_transactions(TEACHER, limit=1000, offset=-5)
    assert (page.limit, page.offset) == (100, 0)

    assert (await wallets.list_transactions(TEACHER, type="DEBIT")).total == 1
    assert (await wallets.list_transactions(TEACHER, source="admin_adjustment")).total == 1
    assert (await wallets.list_transactions(TEACHER, type="sideways")).total == 5
    assert (await wallets.get_summary(TEACHER)).available_balance == Decimal("14")


@pytest.mark.asyncio
async def test_wallet_is_created_on_first_read(uow_factory):
    wallet = await WalletService(uow_factory, currency="EUR").get_summary(42)

    assert wallet.owner_id == 42
    assert wallet.available_balance == Decimal("0")
    assert wallet.pending_payout == Decimal("0")
    assert wallet.currency == "EUR"
