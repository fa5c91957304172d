from decimal import Decimal

import pytest

from application.dto import (
    PayoutMethodCreateDTO,
    PayoutMethodUpdateDTO,
    PayoutRequestCreateDTO,
)
from application.services.payout_service import PayoutService
from application.services.wallet_service import WalletService
from domain.common.exceptions import (
    DomainValidationException,
    InsufficientBalanceException,
    InvalidStateTransitionException,
    ResourceNotFoundException,
)
from domain.wallet.service import WalletLedger

TEACHER = 500
OTHER_TEACHER = 501


async def _fund(uow_factory, owner_id=TEACHER, amount="100"):
    async with uow_factory() as uow:
        await WalletLedger(uow.wallet_repository).credit_for_teacher(
            owner_id, Decimal(amount), reference_id=f"SALE:{owner_id}"
        )


@pytest.fixture
def payouts(uow_factory):
    return PayoutService(uow_factory)


@pytest.fixture
def wallets(uow_factory):
    return WalletService(uow_factory)


@pytest.mark.asyncio
async def test_payout_methods_keep_a_single_default(payouts):
    bank = await payouts.add_payout_method(
        TEACHER,
        PayoutMethodCreateDTO(type="bank_transfer", label="Maybank", details={"account": "123"}, is_default=True),
    )
    assert bank.type == "BANK_TRANSFER"
    assert bank.is_default

    paypal = await payouts.add_payout_method(
        TEACHER, PayoutMethodCreateDTO(type="PAYPAL", label="PayPal", is_default=True)
    )
    methods = {m.id: m for m in await payouts.list_payout_methods(TEACHER)}
    assert not methods[bank.id].is_default
    assert methods[paypal.id].is_default

    updated = await payouts.update_payout_method(
        TEACHER, bank.id, PayoutMethodUpdateDTO(label=" Maybank savings ", is_default=True)
    )
    assert updated.label == "Maybank savings"
    assert updated.details == {"account": "123"}
    methods = {m.id: m for m in await payouts.list_payout_methods(TEACHER)}
    assert methods[bank.id].is_default
    assert not methods[paypal.id].is_default

    await payouts.delete_payout_method(TEACHER, paypal.id)
    assert [m.id for m in await payouts.list_payout_methods(TEACHER)] == [bank.id]


@pytest.mark.asyncio
async def test_payout_method_rules(payouts):
    with pytest.raises(DomainValidationException) as exc_info:
        await payouts.add_payout_method(TEACHER, PayoutMethodCreateDTO(type="cheque", label="x"))
    assert "BANK_TRANSFER" in exc_info.value.message

    method = await payouts.add_payout_method(TEACHER, PayoutMethodCreateDTO(type="GRABPAY", label="Grab"))
    with pytest.raises(ResourceNotFoundException):
        await payouts.update_payout_method(OTHER_TEACHER, method.id, PayoutMethodUpdateDTO(label="mine"))
    with pytest.raises(ResourceNotFoundException):
        await payouts.delete_payout_method(OTHER_TEACHER, method.id)
    assert await payouts.list_payout_methods(OTHER_TEACHER) == []


@pytest.mark.asyncio
async def test_request_moves_balance_to_pending_payout(payouts, wallets, uow_factory):
    await _fund(uow_factory)
    method = await payouts.add_payout_method(
        TEACHER, PayoutMethodCreateDTO(type="TOUCH_N_GO", label="TNG", is_default=True)
    )

    payout = await payouts.request_payout(TEACHER, PayoutRequestCreateDTO(amount=Decimal("60"), note=" monthly "))
    assert payout.status == "PENDING"
    assert payout.method_id == method.id
    assert payout.note == "monthly"

    wallet = await wallets.get_summary(TEACHER)
    assert wallet.available_balance == Decimal("40")
    assert wallet.pending_payout == Decimal("60")
    [debit] = (await wallets.list_transactions(TEACHER, source="PAYOUT")).items
    assert debit.type == "DEBIT"
    assert debit.amount == Decimal("60")
    assert debit.reference_id == f"PAYOUT:{payout.id}"
    assert await wallets.balance_matches_ledger(TEACHER)


@pytest.mark.asyncio
async def test_request_beyond_balance_is_refused(payouts, wallets, uow_factory):
    await _fund(uow_factory, amount="30")

    with pytest.raises(InsufficientBalanceException):
        await payouts.request_payout(TEACHER, PayoutRequestCreateDTO(amount=Decimal("30.01")))

    assert (await payouts.list_my_payouts(TEACHER)).total == 0
    wallet = await wallets.get_summary(TEACHER)
    assert wallet.available_balance == Decimal("30")
    assert wallet.pending_payout == Decimal("0")


@pytest.mark.asyncio
async def test_request_with_foreign_method_is_refused(payouts, uow_factory):
    await _fund(uow_factory)
    foreign = await payouts.add_payout_method(OTHER_TEACHER, PayoutMethodCreateDTO(type="PAYPAL", label="PP"))

    with pytest.raises(DomainValidationException):
        await payouts.request_payout(TEACHER, PayoutRequestCreateDTO(amount=Decimal("10"), method_id=foreign.id))
    assert (await payouts.list_my_payouts(TEACHER)).total == 0


@pytest.mark.asyncio
async def test_rejected_payout_restores_balance(payouts, wallets, uow_factory):
    await _fund(uow_factory)
    payout = await payouts.request_payout(TEACHER, PayoutRequestCreateDTO(amount=Decimal("70")))
    await payouts.approve(payout.id, "looks fine")

    rejected = await payouts.reject(payout.id, "account closed")
    assert rejected.status == "REJECTED"
    assert rejected.admin_note == "account closed"

    wallet = await wallets.get_summary(TEACHER)
    assert wallet.available_balance == Decimal("100")
    assert wallet.pending_payout == Decimal("0")
    [reversal] = (await wallets.list_transactions(TEACHER, source="REVERSAL")).items
    assert reversal.type == "CREDIT"
    assert reversal.reference_id == f"PAYOUT_REVERSAL:{payout.id}"
    assert reversal.metadata["payoutId"] == payout.id
    assert await wallets.balance_matches_ledger(TEACHER)

    with pytest.raises(InvalidStateTransitionException):
        await payouts.reject(payout.id)
    assert (await wallets.get_summary(TEACHER)).available_balance == Decimal("100")


@pytest.mark.asyncio
async def test_paid_payout_clears_pending_amount(payouts, wallets, uow_factory):
    await _fund(uow_factory)
    payout = await payouts.request_payout(TEACHER, PayoutRequestCreateDTO(amount=Decimal("25")))

    with pytest.raises(InvalidStateTransitionException):
        await payouts.mark_paid(payout.id)

    await payouts.mark_processing(payout.id)
    paid = await payouts.mark_paid(payout.id, external_reference="TRX-1")
    assert paid.status == "PAID"
    assert paid.external_reference == "TRX-1"
    assert paid.processed_at is not None

    wallet = await wallets.get_summary(TEACHER)
    assert wallet.available_balance == Decimal("75")
    assert wallet.pending_payout == Decimal("0")
    assert (await wallets.list_transactions(TEACHER)).total == 2
    assert await wallets.balance_matches_ledger(TEACHER)


@pytest.mark.asyncio
async def test_payout_listing_filters_by_status_and_owner(payouts, uow_factory):
    await _fund(uow_factory)
    await _fund(uow_factory, owner_id=OTHER_TEACHER, amount="50")
    first = await payouts.request_payout(TEACHER, PayoutRequestCreateDTO(amount=Decimal("10")))
    await payouts.request_payout(TEACHER, PayoutRequestCreateDTO(amount=Decimal("20")))
    await payouts.request_payout(OTHER_TEACHER, PayoutRequestCreateDTO(amount=Decimal("5")))
    await payouts.approve(first.id)

    assert (await payouts.list_my_payouts(TEACHER)).total == 2
    assert (await payouts.list_my_payouts(OTHER_TEACHER)).total == 1
    assert (await payouts.list_payout_requests()).total == 3
    assert (await payouts.list_payout_requests(status="pending")).total == 2
    approved = await payouts.list_payout_requests(status="APPROVED")
    assert [p.id for p in approved.items] == [first.id]
    assert (await payouts.list_payout_requests(status="lost")).total == 3

    with pytest.raises(ResourceNotFoundException):
        await payouts.approve(9999)
