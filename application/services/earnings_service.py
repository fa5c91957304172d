"""
Teacher earnings reporting built on normalized earnings entries.

Package payments carry the teacher earning fixed at checkout; order payments
are split per item at the owning teacher's rate. Either way the report only
sees ``NormalizedEarning`` rows belonging to the requesting teacher.
"""
from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal
from typing import Callable, Optional

from application.dto import CourseEarningsDTO, EarningEntryDTO, TeacherEarningsDTO
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import ResourceNotFoundException
from domain.common.money import ZERO
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.earnings.entries import NormalizedEarning, normalize_earnings

logger = get_logger(__name__)


class EarningsService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        default_rate: Optional[Decimal] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._default_rate = settings.commerce.platform_commission_rate if default_rate is None else default_rate

    async def _load(self, user_id: int) -> tuple[list[NormalizedEarning], dict[int, str]]:
        async with self._uow_factory(readonly=True) as uow:
            teacher = await uow.catalog_repository.get_teacher_by_user(user_id)
            if teacher is None:
                raise ResourceNotFoundException("Teacher profile")
            courses = await uow.catalog_repository.list_courses_by_teacher(teacher.id)
            package_ids = await uow.catalog_repository.list_package_ids_by_teacher(teacher.id)
            if not package_ids:
                return [], {c.id: c.title for c in courses}

            payments = await uow.payment_repository.list_completed_for_packages(package_ids)
            orders = await uow.order_repository.get_many(p.order_id for p in payments if p.order_id is not None)
            involved = set(package_ids)
            for order in orders.values():
                involved.update(order.package_ids)
            listings = await uow.catalog_repository.get_packages(involved)

        entries: list[NormalizedEarning] = []
        for payment in payments:
            order = orders.get(payment.order_id) if payment.order_id is not None else None
            if payment.is_order_payment and order is None:
                logger.warning("earnings_order_missing", payment_id=payment.id, order_id=payment.order_id)
                continue
            for entry in normalize_earnings(payment, order=order, listings=listings, default_rate=self._default_rate):
                if entry.teacher_profile_id == teacher.id:
                    entries.append(entry)
        entries.sort(key=lambda e: (e.paid_at is None, e.paid_at), reverse=True)
        return entries, {c.id: c.title for c in courses}

    async def get_teacher_earnings(self, user_id: int) -> TeacherEarningsDTO:
        entries, _ = await self._load(user_id)
        return TeacherEarningsDTO(
            total_earnings=sum((e.teacher_earning for e in entries), ZERO),
            total_gross=sum((e.gross for e in entries), ZERO),
            sales=len(entries),
            entries=[
                EarningEntryDTO(
                    payment_id=e.payment_id,
                    order_item_id=e.order_item_id,
                    course_id=e.course_id,
                    package_id=e.package_id,
                    gross=e.gross,
                    teacher_earning=e.teacher_earning,
                    paid_at=e.paid_at,
                )
                for e in entries
            ],
        )

    async def get_teacher_earnings_by_course(self, user_id: int) -> list[CourseEarningsDTO]:
        """Per-course totals; courses without sales are listed with zeros."""
        entries, titles = await self._load(user_id)
        totals: "OrderedDict[int, list]" = OrderedDict(
            (course_id, [ZERO, ZERO, 0]) for course_id in sorted(titles)
        )
        for e in entries:
            bucket = totals.setdefault(e.course_id, [ZERO, ZERO, 0])
            bucket[0] += e.teacher_earning
            bucket[1] += e.gross
            bucket[2] += 1
        return [
            CourseEarningsDTO(
                course_id=course_id,
                course_title=titles.get(course_id, ""),
                total_earnings=earned,
                total_gross=gross,
                sales=sales,
            )
            for course_id, (earned, gross, sales) in totals.items()
        ]
