"""
退款仓储实现
"""
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.money import ZERO, as_decimal
from domain.refund.entity import OPEN_STATUSES, Refund, RefundMethod, RefundStatus
from domain.refund.repository import RefundRepository
from infrastructure.models.refund import RefundModel

logger = get_logger(__name__)


class SQLAlchemyRefundRepository(RefundRepository):
    """退款仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: RefundModel) -> Refund:
        return Refund(
            id=model.id,
            order_id=model.order_id,
            user_id=model.user_id,
            amount=as_decimal(model.amount),
            reason=model.reason,
            status=RefundStatus(model.status),
            reason_category=model.reason_category,
            refund_method=RefundMethod(model.refund_method),
            bank_details=model.bank_details,
            notes=model.notes,
            provider_refund_id=model.provider_refund_id,
            processed_at=model.processed_at,
            completed_at=model.completed_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def _get_model(self, refund_id: int) -> Optional[RefundModel]:
        result = await self.session.execute(
            select(RefundModel)
            .where(RefundModel.id == refund_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, refund: Refund) -> Refund:
        model = RefundModel(
            order_id=refund.order_id,
            user_id=refund.user_id,
            amount=refund.amount,
            reason=refund.reason,
            reason_category=refund.reason_category,
            status=refund.status.value,
            refund_method=refund.refund_method.value,
            bank_details=refund.bank_details,
            notes=refund.notes,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        logger.info("refund_created", refund_id=model.id, order_id=model.order_id, amount=str(model.amount))
        return self._to_entity(model)

    async def get_by_id(self, refund_id: int) -> Optional[Refund]:
        model = await self._get_model(refund_id)
        return self._to_entity(model) if model else None

    async def update(self, refund: Refund) -> Refund:
        model = await self._get_model(refund.id)
        if not model:
            raise ValueError(f"Refund with id {refund.id} not found")

        model.status = refund.status.value
        model.notes = refund.notes
        model.provider_refund_id = refund.provider_refund_id
        model.processed_at = refund.processed_at
        model.completed_at = refund.completed_at

        await self.session.flush()
        await self.session.refresh(model)
        logger.info("refund_updated", refund_id=model.id, status=model.status)
        return self._to_entity(model)

    async def find_open_for_order(self, order_id: int) -> Optional[Refund]:
        result = await self.session.execute(
            select(RefundModel)
            .where(
                RefundModel.order_id == order_id,
                RefundModel.status.in_([s.value for s in OPEN_STATUSES]),
            )
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_page(
        self,
        *,
        status: Optional[RefundStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Refund], int]:
        conditions = []
        if status is not None:
            conditions.append(RefundModel.status == status.value)
        total = await self.session.scalar(
            select(func.count()).select_from(RefundModel).where(*conditions)
        )
        result = await self.session.execute(
            select(RefundModel)
            .where(*conditions)
            .order_by(RefundModel.created_at.desc(), RefundModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()], int(total or 0)

    async def list_by_user(self, user_id: int) -> List[Refund]:
        result = await self.session.execute(
            select(RefundModel)
            .where(RefundModel.user_id == user_id)
            .order_by(RefundModel.created_at.desc(), RefundModel.id.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count_by_status(self) -> dict[RefundStatus, int]:
        result = await self.session.execute(
            select(RefundModel.status, func.count()).group_by(RefundModel.status)
        )
        counts = {status: 0 for status in RefundStatus}
        for status, count in result.all():
            counts[RefundStatus(status)] = int(count)
        return counts

    async def sum_amount(self, status: Optional[RefundStatus] = None) -> Decimal:
        stmt = select(func.coalesce(func.sum(RefundModel.amount), 0))
        if status is not None:
            stmt = stmt.where(RefundModel.status == status.value)
        return as_decimal(await self.session.scalar(stmt))

    async def completed_totals_by_order(self, order_ids: Iterable[int]) -> dict[int, Decimal]:
        ids = set(order_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(RefundModel.order_id, func.sum(RefundModel.amount))
            .where(
                RefundModel.order_id.in_(ids),
                RefundModel.status == RefundStatus.COMPLETED.value,
            )
            .group_by(RefundModel.order_id)
        )
        return {order_id: as_decimal(total) if total is not None else ZERO for order_id, total in result.all()}
