"""
支付仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.money import as_decimal
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.repository import PaymentRepository
from infrastructure.models.order import OrderItemModel
from infrastructure.models.payment import PaymentModel

logger = get_logger(__name__)


class SQLAlchemyPaymentRepository(PaymentRepository):
    """支付仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentModel) -> Payment:
        """将数据库模型转换为领域实体"""
        return Payment(
            id=model.id,
            user_id=model.user_id,
            package_id=model.package_id,
            order_id=model.order_id,
            amount=as_decimal(model.amount),
            platform_commission=as_decimal(model.platform_commission),
            teacher_earning=as_decimal(model.teacher_earning),
            currency=model.currency,
            status=PaymentStatus(model.status),
            provider_ref=model.provider_ref,
            client_secret=model.client_secret,
            paid_at=model.paid_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Payment) -> PaymentModel:
        """将领域实体转换为数据库模型"""
        return PaymentModel(
            id=entity.id,
            user_id=entity.user_id,
            package_id=entity.package_id,
            order_id=entity.order_id,
            amount=entity.amount,
            platform_commission=entity.platform_commission,
            teacher_earning=entity.teacher_earning,
            currency=entity.currency,
            status=entity.status.value,
            provider_ref=entity.provider_ref,
            client_secret=entity.client_secret,
            paid_at=entity.paid_at,
        )

    async def _get_model(self, payment_id: int) -> Optional[PaymentModel]:
        result = await self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.id == payment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, payment: Payment) -> Payment:
        """创建支付记录"""
        db_payment = self._to_model(payment)
        self.session.add(db_payment)
        await self.session.flush()
        await self.session.refresh(db_payment)
        logger.info(
            "payment_created",
            payment_id=db_payment.id,
            package_id=db_payment.package_id,
            order_id=db_payment.order_id,
            amount=str(db_payment.amount),
        )
        return self._to_entity(db_payment)

    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        """根据ID获取支付"""
        db_payment = await self._get_model(payment_id)
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_order_id(self, order_id: int) -> Optional[Payment]:
        result = await self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.order_id == order_id)
            .order_by(PaymentModel.id.desc())
            .limit(1)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def update(self, payment: Payment) -> Payment:
        """更新支付记录（可变字段：状态、网关凭证、支付时间）"""
        db_payment = await self._get_model(payment.id)
        if not db_payment:
            raise ValueError(f"Payment with id {payment.id} not found")

        db_payment.status = payment.status.value
        db_payment.provider_ref = payment.provider_ref
        db_payment.client_secret = payment.client_secret
        db_payment.paid_at = payment.paid_at

        await self.session.flush()
        await self.session.refresh(db_payment)
        logger.info("payment_updated", payment_id=db_payment.id, status=db_payment.status)
        return self._to_entity(db_payment)

    async def mark_completed_if_pending(self, payment_id: int, paid_at: datetime) -> bool:
        result = await self.session.execute(
            update(PaymentModel)
            .where(
                PaymentModel.id == payment_id,
                PaymentModel.status == PaymentStatus.PENDING.value,
            )
            .values(status=PaymentStatus.COMPLETED.value, paid_at=paid_at, updated_at=paid_at)
        )
        return result.rowcount == 1

    async def list_completed_with_paid_at(self) -> List[Payment]:
        result = await self.session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.status == PaymentStatus.COMPLETED.value,
                PaymentModel.paid_at.is_not(None),
            )
            .order_by(PaymentModel.paid_at, PaymentModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_completed_for_packages(self, package_ids: Iterable[int]) -> List[Payment]:
        ids = list(package_ids)
        if not ids:
            return []
        order_ids = select(OrderItemModel.order_id).where(OrderItemModel.package_id.in_(ids))
        result = await self.session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.status == PaymentStatus.COMPLETED.value,
                or_(PaymentModel.package_id.in_(ids), PaymentModel.order_id.in_(order_ids)),
            )
            .order_by(PaymentModel.paid_at.desc(), PaymentModel.id.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]
