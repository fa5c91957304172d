"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.repositories.catalog_repository import SQLAlchemyCatalogRepository
from infrastructure.repositories.enrollment_repository import SQLAlchemyEnrollmentRepository
from infrastructure.repositories.order_repository import (
    SQLAlchemyCartRepository,
    SQLAlchemyOrderRepository,
)
from infrastructure.repositories.payment_repository import SQLAlchemyPaymentRepository
from infrastructure.repositories.payout_repository import (
    SQLAlchemyPayoutMethodRepository,
    SQLAlchemyPayoutRequestRepository,
)
from infrastructure.repositories.refund_repository import SQLAlchemyRefundRepository
from infrastructure.repositories.wallet_repository import (
    SQLAlchemyLedgerOutboxRepository,
    SQLAlchemyWalletRepository,
)


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """基于SQLAlchemy的Unit of Work

    session_factory 由组合根注入（Database.session_factory），不依赖全局引擎。
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._external_session = session
        self.session: Optional[AsyncSession] = session

    def _bind_repositories(self, session: Optional[AsyncSession]) -> None:
        if session is None:
            self.catalog_repository = None  # type: ignore[assignment]
            self.enrollment_repository = None  # type: ignore[assignment]
            self.payment_repository = None  # type: ignore[assignment]
            self.order_repository = None  # type: ignore[assignment]
            self.cart_repository = None  # type: ignore[assignment]
            self.wallet_repository = None  # type: ignore[assignment]
            self.outbox_repository = None  # type: ignore[assignment]
            self.refund_repository = None  # type: ignore[assignment]
            self.payout_method_repository = None  # type: ignore[assignment]
            self.payout_repository = None  # type: ignore[assignment]
            return
        self.catalog_repository = SQLAlchemyCatalogRepository(session)
        self.enrollment_repository = SQLAlchemyEnrollmentRepository(session)
        self.payment_repository = SQLAlchemyPaymentRepository(session)
        self.order_repository = SQLAlchemyOrderRepository(session)
        self.cart_repository = SQLAlchemyCartRepository(session)
        self.wallet_repository = SQLAlchemyWalletRepository(session)
        self.outbox_repository = SQLAlchemyLedgerOutboxRepository(session)
        self.refund_repository = SQLAlchemyRefundRepository(session)
        self.payout_method_repository = SQLAlchemyPayoutMethodRepository(session)
        self.payout_repository = SQLAlchemyPayoutRequestRepository(session)

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self._bind_repositories(self.session)
        # 仅在非只读模式下显式开启事务
        if not self._readonly and not self.session.in_transaction():
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._external_session is None and self.session is not None:
                await self.session.close()
                self.session = None
            self._bind_repositories(None)
            self._committed = False

    async def commit(self) -> None:
        if self._readonly:
            # 只读情况下不提交
            self._committed = True
            return
        if self.session and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
