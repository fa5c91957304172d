from decimal import Decimal

import pytest

from application.services.checkout_service import CheckoutService
from application.services.earnings_service import EarningsService
from application.services.order_service import OrderService
from application.services.payment_confirmation_service import PaymentConfirmationService
from application.services.wallet_service import WalletSyncService
from domain.common.exceptions import ResourceNotFoundException

TEACHER = 500
OTHER_TEACHER = 501


@pytest.fixture
def buy(uow_factory, gateway):
    checkout = CheckoutService(uow_factory, gateway, default_rate=Decimal("10"))
    confirm = PaymentConfirmationService(uow_factory, gateway, WalletSyncService(uow_factory))
    orders = OrderService(uow_factory)

    async def _package(student, package_id):
        intent = await checkout.create_package_intent(student, package_id)
        await confirm.confirm(student, intent.payment_id, intent.payment_intent_id)

    async def _cart(student, *package_ids):
        for package_id in package_ids:
            await orders.add_to_cart(student, package_id)
        intent = await checkout.create_cart_intent(student)
        await confirm.confirm(student, intent.payment_id, intent.payment_intent_id)

    return _package, _cart


@pytest.mark.asyncio
async def test_earnings_cover_direct_and_cart_sales(uow_factory, seed, buy):
    buy_package, buy_cart = buy
    teacher_id, course_id, first = await seed.listing(TEACHER, "100", commission_rate="20")
    second_course = await seed.course(teacher_id, "Advanced")
    second = await seed.package(second_course, "60")
    _, _, foreign = await seed.listing(OTHER_TEACHER, "30")

    await buy_package(1, first)
    await buy_cart(2, first, second, foreign)

    service = EarningsService(uow_factory, default_rate=Decimal("10"))
    report = await service.get_teacher_earnings(TEACHER)

    # 80 + 80 + 48; the other teacher's line is excluded
    assert report.total_earnings == Decimal("208")
    assert report.total_gross == Decimal("260")
    assert report.sales == 3
    assert {e.package_id for e in report.entries} == {first, second}
    assert sum(1 for e in report.entries if e.order_item_id is not None) == 2

    by_course = {c.course_id: c for c in await service.get_teacher_earnings_by_course(TEACHER)}
    assert by_course[course_id].total_earnings == Decimal("160")
    assert by_course[course_id].sales == 2
    assert by_course[second_course].course_title == "Advanced"
    assert by_course[second_course].total_earnings == Decimal("48")


@pytest.mark.asyncio
async def test_courses_without_sales_are_zero_filled(uow_factory, seed):
    teacher_id = await seed.teacher(TEACHER)
    course_id = await seed.course(teacher_id, "Empty")

    service = EarningsService(uow_factory)
    report = await service.get_teacher_earnings(TEACHER)
    assert report.total_earnings == Decimal("0")
    assert report.entries == []

    [course] = await service.get_teacher_earnings_by_course(TEACHER)
    assert course.course_id == course_id
    assert course.sales == 0
    assert course.total_earnings == Decimal("0")


@pytest.mark.asyncio
async def test_unknown_teacher(uow_factory):
    with pytest.raises(ResourceNotFoundException):
        await EarningsService(uow_factory).get_teacher_earnings(12345)
