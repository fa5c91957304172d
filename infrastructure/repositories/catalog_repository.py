"""
课程目录仓储实现
"""
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.catalog.entity import Course, LessonPackage, PackageListing, TeacherProfile
from domain.catalog.repository import CatalogRepository
from domain.common.money import as_decimal
from infrastructure.models.catalog import CourseModel, LessonPackageModel, TeacherProfileModel


class SQLAlchemyCatalogRepository(CatalogRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _teacher(model: TeacherProfileModel) -> TeacherProfile:
        return TeacherProfile(
            id=model.id,
            user_id=model.user_id,
            commission_rate=as_decimal(model.commission_rate) if model.commission_rate is not None else None,
            total_students=model.total_students or 0,
            total_earnings=as_decimal(model.total_earnings),
        )

    @staticmethod
    def _course(model: CourseModel) -> Course:
        return Course(
            id=model.id,
            teacher_profile_id=model.teacher_profile_id,
            title=model.title,
            is_published=bool(model.is_published),
        )

    @staticmethod
    def _package(model: LessonPackageModel) -> LessonPackage:
        return LessonPackage(
            id=model.id,
            course_id=model.course_id,
            name=model.name,
            price=as_decimal(model.price),
            discount=as_decimal(model.discount),
            final_price=as_decimal(model.final_price),
            duration_days=model.duration_days,
            is_active=bool(model.is_active),
        )

    def _listing_query(self):
        return (
            select(LessonPackageModel, CourseModel, TeacherProfileModel)
            .join(CourseModel, CourseModel.id == LessonPackageModel.course_id)
            .outerjoin(TeacherProfileModel, TeacherProfileModel.id == CourseModel.teacher_profile_id)
            .execution_options(populate_existing=True)
        )

    def _to_listing(self, row) -> PackageListing:
        package, course, teacher = row
        return PackageListing(
            package=self._package(package),
            course=self._course(course),
            teacher=self._teacher(teacher) if teacher is not None else None,
        )

    async def get_package(self, package_id: int) -> Optional[PackageListing]:
        result = await self.session.execute(
            self._listing_query().where(LessonPackageModel.id == package_id)
        )
        row = result.first()
        return self._to_listing(row) if row else None

    async def get_packages(self, package_ids: Iterable[int]) -> dict[int, PackageListing]:
        ids = set(package_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            self._listing_query().where(LessonPackageModel.id.in_(ids))
        )
        listings = (self._to_listing(row) for row in result.all())
        return {listing.package.id: listing for listing in listings}

    async def get_teacher_by_user(self, user_id: int) -> Optional[TeacherProfile]:
        result = await self.session.execute(
            select(TeacherProfileModel)
            .where(TeacherProfileModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._teacher(model) if model else None

    async def list_courses_by_teacher(self, teacher_profile_id: int) -> List[Course]:
        result = await self.session.execute(
            select(CourseModel)
            .where(CourseModel.teacher_profile_id == teacher_profile_id)
            .order_by(CourseModel.id)
        )
        return [self._course(m) for m in result.scalars().all()]

    async def list_package_ids_by_teacher(self, teacher_profile_id: int) -> List[int]:
        result = await self.session.execute(
            select(LessonPackageModel.id)
            .join(CourseModel, CourseModel.id == LessonPackageModel.course_id)
            .where(CourseModel.teacher_profile_id == teacher_profile_id)
        )
        return list(result.scalars().all())

    async def increment_teacher_stats(
        self,
        teacher_profile_id: int,
        *,
        students: int = 0,
        earnings: Decimal = Decimal("0"),
    ) -> None:
        # 原子递增，避免读-改-写丢失并发更新
        await self.session.execute(
            update(TeacherProfileModel)
            .where(TeacherProfileModel.id == teacher_profile_id)
            .values(
                total_students=TeacherProfileModel.total_students + students,
                total_earnings=TeacherProfileModel.total_earnings + earnings,
            )
        )
