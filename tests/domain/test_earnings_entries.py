from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.catalog.entity import Course, LessonPackage, PackageListing, TeacherProfile
from domain.common.exceptions import InvalidPaymentStateException
from domain.earnings.entries import (
    DirectSaleEarning,
    OrderItemEarning,
    earnings_entries,
    normalize_earnings,
)
from domain.order.entity import Order, OrderItem, OrderStatus
from domain.payment.entity import Payment, PaymentStatus

PAID_AT = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _listing(package_id, teacher_id, rate=None, course_id=None):
    teacher = TeacherProfile(id=teacher_id, user_id=1000 + teacher_id, commission_rate=rate)
    course = Course(id=course_id or package_id * 10, teacher_profile_id=teacher_id, title="c", is_published=True)
    package = LessonPackage(
        id=package_id, course_id=course.id, name="p", price=Decimal("0"), discount=Decimal("0"), final_price=Decimal("0")
    )
    return PackageListing(package=package, course=course, teacher=teacher)


def _paid(payment):
    return replace(payment, id=5, status=PaymentStatus.COMPLETED, paid_at=PAID_AT)


def test_package_payment_keeps_recorded_teacher_earning():
    payment = _paid(
        Payment.for_package(
            user_id=1,
            package_id=1,
            amount=Decimal("199.99"),
            platform_commission=Decimal("19.999"),
            teacher_earning=Decimal("179.991"),
        )
    )
    entries = list(earnings_entries(payment))
    assert entries == [
        DirectSaleEarning(
            payment_id=5, package_id=1, gross=Decimal("199.99"), teacher_earning=Decimal("179.991"), paid_at=PAID_AT
        )
    ]

    normalized = normalize_earnings(payment, order=None, listings={1: _listing(1, 7)}, default_rate=Decimal("10"))
    assert len(normalized) == 1
    assert normalized[0].teacher_profile_id == 7
    assert normalized[0].course_id == 10
    assert normalized[0].order_item_id is None
    assert normalized[0].teacher_earning == Decimal("179.991")


def test_order_payment_splits_per_item_with_each_teacher_rate():
    order = Order(
        id=3,
        order_no="ORD-1",
        user_id=1,
        total_amount=Decimal("150"),
        status=OrderStatus.PAID,
        items=[
            OrderItem(id=11, package_id=1, price=Decimal("100"), discount=Decimal("0"), final_price=Decimal("100")),
            OrderItem(id=12, package_id=2, price=Decimal("50"), discount=Decimal("0"), final_price=Decimal("50")),
        ],
    )
    payment = _paid(
        Payment.for_order(
            user_id=1,
            order_id=3,
            amount=Decimal("150"),
            platform_commission=Decimal("25"),
            teacher_earning=Decimal("125"),
        )
    )
    entries = list(earnings_entries(payment, order))
    assert all(isinstance(e, OrderItemEarning) for e in entries)
    assert [e.order_item_id for e in entries] == [11, 12]

    listings = {1: _listing(1, 7, rate=Decimal("20")), 2: _listing(2, 8)}
    normalized = normalize_earnings(payment, order=order, listings=listings, default_rate=Decimal("10"))
    by_teacher = {n.teacher_profile_id: n for n in normalized}
    assert by_teacher[7].teacher_earning == Decimal("80")
    assert by_teacher[8].teacher_earning == Decimal("45")
    assert by_teacher[8].gross == Decimal("50")


def test_entries_for_unknown_packages_are_dropped():
    payment = _paid(
        Payment.for_package(
            user_id=1, package_id=99, amount=Decimal("10"), platform_commission=Decimal("1"), teacher_earning=Decimal("9")
        )
    )
    assert normalize_earnings(payment, order=None, listings={}, default_rate=Decimal("10")) == []


def test_order_payment_without_order_is_rejected():
    payment = _paid(
        Payment.for_order(
            user_id=1, order_id=3, amount=Decimal("10"), platform_commission=Decimal("1"), teacher_earning=Decimal("9")
        )
    )
    with pytest.raises(InvalidPaymentStateException):
        list(earnings_entries(payment))


def test_order_split_follows_recorded_earning_after_rate_change():
    order = Order(
        id=3,
        order_no="ORD-2",
        user_id=1,
        total_amount=Decimal("200"),
        status=OrderStatus.PAID,
        items=[
            OrderItem(id=11, package_id=1, price=Decimal("100"), discount=Decimal("0"), final_price=Decimal("100")),
            OrderItem(id=12, package_id=2, price=Decimal("100"), discount=Decimal("0"), final_price=Decimal("100")),
        ],
    )
    # recorded 120 at sale time; current rates would give 100 + 50
    payment = _paid(
        Payment.for_order(
            user_id=1,
            order_id=3,
            amount=Decimal("200"),
            platform_commission=Decimal("80"),
            teacher_earning=Decimal("120"),
        )
    )
    listings = {1: _listing(1, 7, rate=Decimal("0")), 2: _listing(2, 8, rate=Decimal("50"))}

    normalized = normalize_earnings(payment, order=order, listings=listings, default_rate=Decimal("10"))
    by_teacher = {n.teacher_profile_id: n.teacher_earning for n in normalized}

    assert by_teacher == {7: Decimal("80"), 8: Decimal("40")}
    assert sum(by_teacher.values()) == payment.teacher_earning
