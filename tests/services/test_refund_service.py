from decimal import Decimal

import pytest

from application.dto import RefundRequestDTO
from application.services.checkout_service import CheckoutService
from application.services.order_service import OrderService
from application.services.payment_confirmation_service import PaymentConfirmationService
from application.services.refund_service import RefundService
from application.services.wallet_service import WalletService, WalletSyncService
from domain.common.exceptions import (
    AuthorizationException,
    DomainValidationException,
    InvalidStateTransitionException,
    RefundInProgressException,
)
from domain.order.entity import OrderStatus
from domain.payment.entity import PaymentStatus
from domain.refund.entity import RefundMethod, RefundStatus
from infrastructure.external.payments.exceptions import PaymentProviderError

STUDENT = 1
TEACHER_A = 500
TEACHER_B = 501


@pytest.fixture
def wallet(uow_factory):
    return WalletService(uow_factory)


@pytest.fixture
def refunds(uow_factory, gateway):
    return RefundService(uow_factory, gateway, WalletSyncService(uow_factory), default_rate=Decimal("10"))


@pytest.fixture
def paid_order(uow_factory, gateway, seed):
    """Two-item order: 100 at 10% for teacher A, 50 at 0% for teacher B."""

    async def _make():
        _, _, first = await seed.listing(TEACHER_A, "100")
        _, _, second = await seed.listing(TEACHER_B, "50", commission_rate="0")
        orders = OrderService(uow_factory)
        await orders.add_to_cart(STUDENT, first)
        await orders.add_to_cart(STUDENT, second)
        intent = await CheckoutService(uow_factory, gateway, default_rate=Decimal("10")).create_cart_intent(STUDENT)
        confirm = PaymentConfirmationService(uow_factory, gateway, WalletSyncService(uow_factory))
        await confirm.confirm(STUDENT, intent.payment_id, intent.payment_intent_id)
        return intent, (first, second)

    return _make


def _request(amount: str, **kwargs) -> RefundRequestDTO:
    return RefundRequestDTO(amount=Decimal(amount), reason="not as described", **kwargs)


@pytest.mark.asyncio
async def test_partial_refund_debits_each_teacher_pro_rata(refunds, paid_order, wallet, gateway, uow_factory):
    intent, (first, second) = await paid_order()
    assert (await wallet.get_summary(TEACHER_A)).available_balance == Decimal("90")
    assert (await wallet.get_summary(TEACHER_B)).available_balance == Decimal("50")

    refund = await refunds.request_refund(STUDENT, intent.order_id, _request("75"))
    assert refund.status == RefundStatus.PENDING
    await refunds.approve(refund.id, "ok")
    done = await refunds.complete(refund.id)

    assert done.status == RefundStatus.COMPLETED
    assert done.provider_refund_id == "re_1"
    assert gateway.refunds[0].charge_id == intent.payment_intent_id
    assert gateway.refunds[0].amount == Decimal("75")
    assert gateway.refunds[0].idempotency_key == f"refund-{refund.id}"

    assert (await wallet.get_summary(TEACHER_A)).available_balance == Decimal("45")
    assert (await wallet.get_summary(TEACHER_B)).available_balance == Decimal("25")
    debit = (await wallet.list_transactions(TEACHER_A, type="debit")).items[0]
    assert debit.reference_id.startswith(f"REFUND:{refund.id}:")
    assert debit.metadata["packageId"] == first
    assert Decimal(debit.metadata["itemRefundShare"]) == Decimal("50")

    async with uow_factory(readonly=True) as uow:
        order = await uow.order_repository.get_by_id(intent.order_id)
        payment = await uow.payment_repository.get_by_id(intent.payment_id)
        enrollment = await uow.enrollment_repository.get(STUDENT, second)
    assert order.status == OrderStatus.REFUNDED
    assert order.refund_amount == Decimal("75")
    assert payment.status == PaymentStatus.COMPLETED
    assert enrollment.is_active


@pytest.mark.asyncio
async def test_full_refund_revokes_access(refunds, paid_order, wallet, uow_factory):
    intent, (first, second) = await paid_order()

    refund = await refunds.request_refund(STUDENT, intent.order_id, _request("150"))
    await refunds.approve(refund.id)
    await refunds.mark_processing(refund.id, "sent to provider")
    await refunds.complete(refund.id)

    assert (await wallet.get_summary(TEACHER_A)).available_balance == Decimal("0")
    assert (await wallet.get_summary(TEACHER_B)).available_balance == Decimal("0")
    assert await wallet.balance_matches_ledger(TEACHER_A)

    async with uow_factory(readonly=True) as uow:
        payment = await uow.payment_repository.get_by_id(intent.payment_id)
        enrollments = [await uow.enrollment_repository.get(STUDENT, pid) for pid in (first, second)]
        teacher = await uow.catalog_repository.get_teacher_by_user(TEACHER_A)
    assert payment.status == PaymentStatus.REFUNDED
    assert not any(e.is_active for e in enrollments)
    # lifetime counters are not reversed
    assert teacher.total_students == 1
    assert teacher.total_earnings == Decimal("90")


@pytest.mark.asyncio
async def test_one_open_refund_per_order(refunds, paid_order):
    intent, _ = await paid_order()
    first = await refunds.request_refund(STUDENT, intent.order_id, _request("10"))

    with pytest.raises(RefundInProgressException):
        await refunds.request_refund(STUDENT, intent.order_id, _request("20"))

    await refunds.reject(first.id, "outside refund window")
    again = await refunds.request_refund(STUDENT, intent.order_id, _request("20"))
    assert again.status == RefundStatus.PENDING
    assert [r.id for r in await refunds.list_my_refunds(STUDENT)] == [again.id, first.id]


@pytest.mark.asyncio
async def test_refund_request_validation(refunds, paid_order, seed, uow_factory, gateway):
    intent, _ = await paid_order()

    with pytest.raises(DomainValidationException):
        await refunds.request_refund(STUDENT, intent.order_id, _request("150.01"))
    with pytest.raises(AuthorizationException):
        await refunds.request_refund(STUDENT + 1, intent.order_id, _request("1"))

    _, _, other = await seed.listing(TEACHER_A + 10, "10")
    await OrderService(uow_factory).add_to_cart(STUDENT, other)
    unpaid = await CheckoutService(uow_factory, gateway).create_cart_intent(STUDENT)
    with pytest.raises(DomainValidationException):
        await refunds.request_refund(STUDENT, unpaid.order_id, _request("1"))


@pytest.mark.asyncio
async def test_refund_by_payment_resolves_order(refunds, paid_order):
    intent, _ = await paid_order()

    refund = await refunds.request_refund_for_payment(STUDENT, intent.payment_id, _request("5"))
    assert refund.order_id == intent.order_id


@pytest.mark.asyncio
async def test_complete_requires_approval(refunds, paid_order):
    intent, _ = await paid_order()
    refund = await refunds.request_refund(STUDENT, intent.order_id, _request("5"))

    with pytest.raises(InvalidStateTransitionException):
        await refunds.complete(refund.id)


@pytest.mark.asyncio
async def test_provider_failure_leaves_refund_approved(refunds, paid_order, gateway, wallet, uow_factory):
    intent, _ = await paid_order()
    refund = await refunds.request_refund(STUDENT, intent.order_id, _request("75"))
    await refunds.approve(refund.id)
    gateway.refund_error = PaymentProviderError("card declined", provider="stub")

    with pytest.raises(PaymentProviderError):
        await refunds.complete(refund.id)

    assert (await refunds.get_refund(refund.id)).status == RefundStatus.APPROVED
    async with uow_factory(readonly=True) as uow:
        order = await uow.order_repository.get_by_id(intent.order_id)
    assert order.status == OrderStatus.PAID
    assert (await wallet.get_summary(TEACHER_A)).available_balance == Decimal("90")


@pytest.mark.asyncio
async def test_manual_refund_skips_provider(refunds, paid_order, gateway):
    intent, _ = await paid_order()
    refund = await refunds.request_refund(
        STUDENT,
        intent.order_id,
        _request("20", refund_method=RefundMethod.BANK_TRANSFER, bank_details={"iban": "DE00"}),
    )
    await refunds.approve(refund.id)
    done = await refunds.complete(refund.id)

    assert done.provider_refund_id is None
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_admin_listing_and_stats(refunds, paid_order):
    intent, _ = await paid_order()
    refund = await refunds.request_refund(STUDENT, intent.order_id, _request("30"))
    await refunds.approve(refund.id)
    await refunds.complete(refund.id)

    page = await refunds.list_refunds(status="completed", limit=500)
    assert page.total == 1
    assert page.limit == 100
    assert (await refunds.list_refunds(status="PENDING")).total == 0
    with pytest.raises(DomainValidationException):
        await refunds.list_refunds(status="bogus")

    stats = await refunds.get_stats()
    assert stats.total == 1
    assert stats.by_status["COMPLETED"] == 1
    assert stats.by_status["PENDING"] == 0
    assert stats.completed_amount == Decimal("30")
