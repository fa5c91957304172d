"""
提现仓储实现 - 收款方式与提现申请
"""
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.money import as_decimal
from domain.payout.entity import PayoutMethod, PayoutMethodType, PayoutRequest, PayoutStatus
from domain.payout.repository import PayoutMethodRepository, PayoutRequestRepository
from infrastructure.models.payout import PayoutMethodModel, PayoutRequestModel

logger = get_logger(__name__)


class SQLAlchemyPayoutMethodRepository(PayoutMethodRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: PayoutMethodModel) -> PayoutMethod:
        return PayoutMethod(
            id=model.id,
            wallet_id=model.wallet_id,
            type=PayoutMethodType(model.type),
            label=model.label,
            details=dict(model.details or {}),
            is_default=bool(model.is_default),
            is_verified=bool(model.is_verified),
            created_at=model.created_at,
        )

    async def _get_model(self, method_id: int) -> Optional[PayoutMethodModel]:
        result = await self.session.execute(
            select(PayoutMethodModel)
            .where(PayoutMethodModel.id == method_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, method: PayoutMethod) -> PayoutMethod:
        model = PayoutMethodModel(
            wallet_id=method.wallet_id,
            type=method.type.value,
            label=method.label,
            details=method.details,
            is_default=method.is_default,
            is_verified=method.is_verified,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def get(self, method_id: int) -> Optional[PayoutMethod]:
        model = await self._get_model(method_id)
        return self._to_entity(model) if model else None

    async def update(self, method: PayoutMethod) -> PayoutMethod:
        model = await self._get_model(method.id)
        if not model:
            raise ValueError(f"Payout method with id {method.id} not found")
        model.label = method.label
        model.details = method.details
        model.is_default = method.is_default
        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def delete(self, method_id: int) -> None:
        # 历史提现申请保留，只断开与收款方式的关联
        await self.session.execute(
            update(PayoutRequestModel).where(PayoutRequestModel.method_id == method_id).values(method_id=None)
        )
        await self.session.execute(delete(PayoutMethodModel).where(PayoutMethodModel.id == method_id))

    async def list_by_wallet(self, wallet_id: int) -> List[PayoutMethod]:
        result = await self.session.execute(
            select(PayoutMethodModel)
            .where(PayoutMethodModel.wallet_id == wallet_id)
            .order_by(PayoutMethodModel.is_default.desc(), PayoutMethodModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def find_default(self, wallet_id: int) -> Optional[PayoutMethod]:
        result = await self.session.execute(
            select(PayoutMethodModel)
            .where(PayoutMethodModel.wallet_id == wallet_id, PayoutMethodModel.is_default.is_(True))
            .order_by(PayoutMethodModel.id)
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def clear_default(self, wallet_id: int) -> None:
        await self.session.execute(
            update(PayoutMethodModel)
            .where(PayoutMethodModel.wallet_id == wallet_id)
            .values(is_default=False)
        )


class SQLAlchemyPayoutRequestRepository(PayoutRequestRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: PayoutRequestModel) -> PayoutRequest:
        return PayoutRequest(
            id=model.id,
            wallet_id=model.wallet_id,
            amount=as_decimal(model.amount),
            method_id=model.method_id,
            status=PayoutStatus(model.status),
            note=model.note,
            admin_note=model.admin_note,
            external_reference=model.external_reference,
            requested_at=model.requested_at,
            processed_at=model.processed_at,
        )

    async def _get_model(self, payout_id: int) -> Optional[PayoutRequestModel]:
        result = await self.session.execute(
            select(PayoutRequestModel)
            .where(PayoutRequestModel.id == payout_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, payout: PayoutRequest) -> PayoutRequest:
        model = PayoutRequestModel(
            wallet_id=payout.wallet_id,
            method_id=payout.method_id,
            amount=payout.amount,
            status=payout.status.value,
            note=payout.note,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        logger.info("payout_request_created", payout_id=model.id, wallet_id=model.wallet_id, amount=str(model.amount))
        return self._to_entity(model)

    async def get_by_id(self, payout_id: int) -> Optional[PayoutRequest]:
        model = await self._get_model(payout_id)
        return self._to_entity(model) if model else None

    async def update(self, payout: PayoutRequest) -> PayoutRequest:
        model = await self._get_model(payout.id)
        if not model:
            raise ValueError(f"Payout request with id {payout.id} not found")
        model.status = payout.status.value
        model.admin_note = payout.admin_note
        model.external_reference = payout.external_reference
        model.processed_at = payout.processed_at
        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def list_page(
        self,
        *,
        wallet_id: Optional[int] = None,
        status: Optional[PayoutStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[PayoutRequest], int]:
        conditions = []
        if wallet_id is not None:
            conditions.append(PayoutRequestModel.wallet_id == wallet_id)
        if status is not None:
            conditions.append(PayoutRequestModel.status == status.value)

        total = await self.session.scalar(
            select(func.count()).select_from(PayoutRequestModel).where(*conditions)
        )
        result = await self.session.execute(
            select(PayoutRequestModel)
            .where(*conditions)
            .order_by(PayoutRequestModel.requested_at.desc(), PayoutRequestModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()], int(total or 0)
