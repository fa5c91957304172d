"""
钱包与账本意图仓储实现
"""
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.money import ZERO, as_decimal
from domain.wallet.entity import (
    IntentStatus,
    LedgerIntent,
    TransactionSource,
    TransactionType,
    Wallet,
    WalletTransaction,
)
from domain.wallet.repository import LedgerOutboxRepository, WalletRepository
from infrastructure.models.wallet import WalletModel, WalletOutboxModel, WalletTransactionModel

from ._dialect import upsert_insert


class SQLAlchemyWalletRepository(WalletRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _wallet(model: WalletModel) -> Wallet:
        return Wallet(
            id=model.id,
            owner_id=model.owner_id,
            available_balance=as_decimal(model.available_balance),
            pending_payout=as_decimal(model.pending_payout),
            currency=model.currency,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _transaction(model: WalletTransactionModel) -> WalletTransaction:
        return WalletTransaction(
            id=model.id,
            wallet_id=model.wallet_id,
            amount=as_decimal(model.amount),
            type=TransactionType(model.type),
            source=TransactionSource(model.source),
            reference_id=model.reference_id,
            metadata=dict(model.extra or {}),
            created_at=model.created_at,
        )

    async def _get_model(self, owner_id: int) -> Optional[WalletModel]:
        result = await self.session.execute(
            select(WalletModel)
            .where(WalletModel.owner_id == owner_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_owner(self, owner_id: int) -> Optional[Wallet]:
        model = await self._get_model(owner_id)
        return self._wallet(model) if model else None

    async def get_by_id(self, wallet_id: int) -> Optional[Wallet]:
        result = await self.session.execute(
            select(WalletModel)
            .where(WalletModel.id == wallet_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._wallet(model) if model else None

    async def ensure(self, owner_id: int, currency: str) -> Wallet:
        await self.session.execute(
            upsert_insert(self.session, WalletModel)
            .values(owner_id=owner_id, currency=currency, available_balance=0, pending_payout=0)
            .on_conflict_do_nothing(index_elements=["owner_id"])
        )
        return self._wallet(await self._get_model(owner_id))

    async def find_transaction(self, wallet_id: int, reference_id: str) -> Optional[WalletTransaction]:
        result = await self.session.execute(
            select(WalletTransactionModel).where(
                WalletTransactionModel.wallet_id == wallet_id,
                WalletTransactionModel.reference_id == reference_id,
            )
        )
        model = result.scalar_one_or_none()
        return self._transaction(model) if model else None

    async def add_transaction(self, transaction: WalletTransaction) -> WalletTransaction:
        model = WalletTransactionModel(
            wallet_id=transaction.wallet_id,
            amount=transaction.amount,
            type=transaction.type.value,
            source=transaction.source.value,
            reference_id=transaction.reference_id,
            extra=transaction.metadata or {},
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self._transaction(model)

    async def adjust_balance(
        self,
        wallet_id: int,
        delta: Decimal,
        *,
        pending_delta: Decimal = ZERO,
        floor: Optional[Decimal] = None,
    ) -> Optional[Decimal]:
        stmt = update(WalletModel).where(WalletModel.id == wallet_id)
        if floor is not None:
            # 条件更新：余额检查与扣减在同一条语句内完成
            stmt = stmt.where(WalletModel.available_balance + delta >= floor)
        values = {"available_balance": WalletModel.available_balance + delta}
        if pending_delta:
            values["pending_payout"] = WalletModel.pending_payout + pending_delta
        result = await self.session.execute(stmt.values(**values))
        if not result.rowcount:
            return None
        result = await self.session.execute(
            select(WalletModel.available_balance).where(WalletModel.id == wallet_id)
        )
        return as_decimal(result.scalar_one())

    async def list_transactions(
        self,
        wallet_id: int,
        *,
        limit: int,
        offset: int,
        type: Optional[TransactionType] = None,
        source: Optional[TransactionSource] = None,
    ) -> Tuple[List[WalletTransaction], int]:
        conditions = [WalletTransactionModel.wallet_id == wallet_id]
        if type is not None:
            conditions.append(WalletTransactionModel.type == type.value)
        if source is not None:
            conditions.append(WalletTransactionModel.source == source.value)

        total = await self.session.scalar(
            select(func.count()).select_from(WalletTransactionModel).where(*conditions)
        )
        result = await self.session.execute(
            select(WalletTransactionModel)
            .where(*conditions)
            .order_by(WalletTransactionModel.created_at.desc(), WalletTransactionModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [self._transaction(m) for m in result.scalars().all()], int(total or 0)


class SQLAlchemyLedgerOutboxRepository(LedgerOutboxRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: WalletOutboxModel) -> LedgerIntent:
        return LedgerIntent(
            id=model.id,
            owner_id=model.owner_id,
            direction=TransactionType(model.direction),
            source=TransactionSource(model.source),
            amount=as_decimal(model.amount),
            reference_id=model.reference_id,
            metadata=dict(model.extra or {}),
            status=IntentStatus(model.status),
            attempts=model.attempts or 0,
            last_error=model.last_error,
            created_at=model.created_at,
            processed_at=model.processed_at,
        )

    async def add(self, intent: LedgerIntent) -> LedgerIntent:
        model = WalletOutboxModel(
            owner_id=intent.owner_id,
            direction=intent.direction.value,
            source=intent.source.value,
            amount=intent.amount,
            reference_id=intent.reference_id,
            extra=intent.metadata or {},
            status=intent.status.value,
            attempts=intent.attempts,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def _get_model(self, intent_id: int) -> Optional[WalletOutboxModel]:
        result = await self.session.execute(
            select(WalletOutboxModel)
            .where(WalletOutboxModel.id == intent_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, intent_id: int) -> Optional[LedgerIntent]:
        model = await self._get_model(intent_id)
        return self._to_entity(model) if model else None

    async def list_ids(
        self,
        status: IntentStatus,
        *,
        ids: Optional[Iterable[int]] = None,
        limit: int = 100,
    ) -> List[int]:
        stmt = select(WalletOutboxModel.id).where(WalletOutboxModel.status == status.value)
        if ids is not None:
            stmt = stmt.where(WalletOutboxModel.id.in_(list(ids)))
        result = await self.session.execute(stmt.order_by(WalletOutboxModel.id).limit(limit))
        return list(result.scalars().all())

    async def update(self, intent: LedgerIntent) -> LedgerIntent:
        model = await self._get_model(intent.id)
        if not model:
            raise ValueError(f"Ledger intent with id {intent.id} not found")
        model.status = intent.status.value
        model.attempts = intent.attempts
        model.last_error = intent.last_error
        model.processed_at = intent.processed_at
        await self.session.flush()
        return self._to_entity(model)

    async def reset_failed(self) -> int:
        result = await self.session.execute(
            update(WalletOutboxModel)
            .where(WalletOutboxModel.status == IntentStatus.FAILED.value)
            .values(status=IntentStatus.PENDING.value, attempts=0)
        )
        return result.rowcount or 0
