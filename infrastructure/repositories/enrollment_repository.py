"""
报名仓储实现
"""
from datetime import datetime
from typing import Iterable, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.enrollment.entity import Enrollment
from domain.enrollment.repository import EnrollmentRepository
from infrastructure.models.base import utc_now
from infrastructure.models.payment import EnrollmentModel

from ._dialect import upsert_insert

logger = get_logger(__name__)


class SQLAlchemyEnrollmentRepository(EnrollmentRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: EnrollmentModel) -> Enrollment:
        return Enrollment(
            id=model.id,
            user_id=model.user_id,
            package_id=model.package_id,
            is_active=bool(model.is_active),
            expires_at=model.expires_at,
            progress=model.progress or 0,
            completed_lessons=model.completed_lessons or 0,
            enrolled_at=model.enrolled_at,
        )

    async def _get_model(self, user_id: int, package_id: int) -> Optional[EnrollmentModel]:
        result = await self.session.execute(
            select(EnrollmentModel)
            .where(EnrollmentModel.user_id == user_id, EnrollmentModel.package_id == package_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: int, package_id: int) -> Optional[Enrollment]:
        model = await self._get_model(user_id, package_id)
        return self._to_entity(model) if model else None

    async def get_active(self, user_id: int, package_id: int) -> Optional[Enrollment]:
        enrollment = await self.get(user_id, package_id)
        return enrollment if enrollment and enrollment.is_active else None

    async def upsert_active(
        self,
        user_id: int,
        package_id: int,
        expires_at: Optional[datetime],
    ) -> Tuple[Enrollment, bool]:
        stmt = (
            upsert_insert(self.session, EnrollmentModel)
            .values(
                user_id=user_id,
                package_id=package_id,
                is_active=True,
                expires_at=expires_at,
                progress=0,
                completed_lessons=0,
                enrolled_at=utc_now(),
            )
            .on_conflict_do_nothing(index_elements=["user_id", "package_id"])
            .returning(EnrollmentModel.id)
        )
        inserted_id = (await self.session.execute(stmt)).scalar_one_or_none()
        created = inserted_id is not None
        if not created:
            await self.session.execute(
                update(EnrollmentModel)
                .where(EnrollmentModel.user_id == user_id, EnrollmentModel.package_id == package_id)
                .values(is_active=True, expires_at=expires_at)
            )
        model = await self._get_model(user_id, package_id)
        logger.info(
            "enrollment_upserted",
            enrollment_id=model.id,
            user_id=user_id,
            package_id=package_id,
            created=created,
        )
        return self._to_entity(model), created

    async def deactivate(self, user_id: int, package_ids: Iterable[int]) -> int:
        ids = list(package_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            update(EnrollmentModel)
            .where(EnrollmentModel.user_id == user_id, EnrollmentModel.package_id.in_(ids))
            .values(is_active=False)
        )
        return result.rowcount or 0
