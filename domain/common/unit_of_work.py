"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.catalog.repository import CatalogRepository
from domain.enrollment.repository import EnrollmentRepository
from domain.order.repository import CartRepository, OrderRepository
from domain.payment.repository import PaymentRepository
from domain.payout.repository import PayoutMethodRepository, PayoutRequestRepository
from domain.refund.repository import RefundRepository
from domain.wallet.repository import LedgerOutboxRepository, WalletRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界控制抽象"""

    catalog_repository: CatalogRepository
    enrollment_repository: EnrollmentRepository
    payment_repository: PaymentRepository
    order_repository: OrderRepository
    cart_repository: CartRepository
    wallet_repository: WalletRepository
    outbox_repository: LedgerOutboxRepository
    refund_repository: RefundRepository
    payout_method_repository: PayoutMethodRepository
    payout_repository: PayoutRequestRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
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

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        else:
            # 只在非只读且未显式提交时自动提交
            if not self._readonly and not self._committed:
                await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        """提交事务"""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """回滚事务"""
        ...
