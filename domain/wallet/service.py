"""
钱包账本领域服务 - 在调用方的事务内完成记账

职责：
1. 确保钱包存在（并发安全）
2. 写入不可变流水并同步调整余额
3. 按 reference_id 去重，保证重复投递只记账一次
4. 扣款不允许余额为负（余额不足抛出 InsufficientBalanceException）
5. 提现：冻结到 pending_payout、驳回冲正、打款结清
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException, InsufficientBalanceException
from domain.common.money import ZERO, as_decimal

from .entity import (
    LedgerIntent,
    TransactionSource,
    TransactionType,
    Wallet,
    WalletTransaction,
    payout_reference,
    payout_reversal_reference,
)
from .repository import WalletRepository


@dataclass(frozen=True)
class LedgerPosting:
    """一次记账结果；duplicate 为 True 表示命中去重未重复记账"""

    transaction: WalletTransaction
    balance: Optional[Decimal]
    duplicate: bool = False


class WalletLedger:
    """钱包账本"""

    def __init__(self, wallet_repository: WalletRepository, *, currency: str = "USD"):
        self.wallet_repository = wallet_repository
        self.currency = currency

    async def ensure_wallet(self, owner_id: int) -> Wallet:
        return await self.wallet_repository.ensure(owner_id, self.currency)

    async def credit_for_teacher(
        self,
        owner_id: int,
        amount: Decimal,
        metadata: Optional[dict[str, Any]] = None,
        *,
        reference_id: Optional[str] = None,
        source: TransactionSource = TransactionSource.COURSE_SALE,
    ) -> Optional[LedgerPosting]:
        """给教师钱包入账；非正金额不记账"""
        amount = as_decimal(amount)
        if amount <= ZERO:
            return None
        wallet = await self.ensure_wallet(owner_id)
        return await self._post(wallet, TransactionType.CREDIT, source, amount, reference_id, metadata)

    async def debit_for_refund(
        self,
        owner_id: int,
        amount: Decimal,
        metadata: Optional[dict[str, Any]] = None,
        *,
        reference_id: Optional[str] = None,
        source: TransactionSource = TransactionSource.REFUND_ADJUSTMENT,
    ) -> Optional[LedgerPosting]:
        """退款扣减教师钱包；余额不足时拒绝"""
        amount = as_decimal(amount)
        if amount < ZERO:
            raise DomainValidationException(
                f"扣款金额不能为负: {amount}",
                field="amount",
            )
        if amount == ZERO:
            return None
        wallet = await self.ensure_wallet(owner_id)
        return await self._post(
            wallet, TransactionType.DEBIT, source, amount, reference_id, metadata, require_funds=True
        )

    async def apply_intent(self, intent: LedgerIntent) -> Optional[LedgerPosting]:
        """将账本意图过账到钱包"""
        metadata = dict(intent.metadata or {})
        if intent.direction == TransactionType.CREDIT:
            return await self.credit_for_teacher(
                intent.owner_id,
                intent.amount,
                metadata,
                reference_id=intent.reference_id,
                source=intent.source,
            )
        return await self.debit_for_refund(
            intent.owner_id,
            intent.amount,
            metadata,
            reference_id=intent.reference_id,
            source=intent.source,
        )

    async def hold_for_payout(
        self,
        owner_id: int,
        payout_id: int,
        amount: Decimal,
        metadata: Optional[dict[str, Any]] = None,
    ) -> LedgerPosting:
        """提现申请：可用余额转入待提现，记一笔 PAYOUT 扣款"""
        wallet = await self.ensure_wallet(owner_id)
        return await self._post(
            wallet,
            TransactionType.DEBIT,
            TransactionSource.PAYOUT,
            as_decimal(amount),
            payout_reference(payout_id),
            metadata,
            pending_delta=as_decimal(amount),
            require_funds=True,
        )

    async def release_payout(self, owner_id: int, payout_id: int, amount: Decimal) -> LedgerPosting:
        """提现驳回：待提现退回可用余额，记一笔 REVERSAL 入账"""
        wallet = await self.ensure_wallet(owner_id)
        return await self._post(
            wallet,
            TransactionType.CREDIT,
            TransactionSource.REVERSAL,
            as_decimal(amount),
            payout_reversal_reference(payout_id),
            {"payoutId": payout_id, "reason": "Payout rejected"},
            pending_delta=-as_decimal(amount),
        )

    async def settle_payout(self, owner_id: int, amount: Decimal) -> None:
        """提现已打款：只减少待提现金额，可用余额不变"""
        wallet = await self.ensure_wallet(owner_id)
        await self.wallet_repository.adjust_balance(wallet.id, ZERO, pending_delta=-as_decimal(amount))

    async def _post(
        self,
        wallet: Wallet,
        type_: TransactionType,
        source: TransactionSource,
        amount: Decimal,
        reference_id: Optional[str],
        metadata: Optional[dict[str, Any]],
        *,
        pending_delta: Decimal = ZERO,
        require_funds: bool = False,
    ) -> LedgerPosting:
        if reference_id:
            existing = await self.wallet_repository.find_transaction(wallet.id, reference_id)
            if existing is not None:
                return LedgerPosting(transaction=existing, balance=None, duplicate=True)

        delta = amount if type_ == TransactionType.CREDIT else -amount
        balance = await self.wallet_repository.adjust_balance(
            wallet.id,
            delta,
            pending_delta=pending_delta,
            floor=ZERO if require_funds else None,
        )
        if balance is None:
            raise InsufficientBalanceException(wallet.owner_id, amount, wallet.available_balance)

        transaction = await self.wallet_repository.add_transaction(
            WalletTransaction(
                id=None,
                wallet_id=wallet.id,
                amount=amount,
                type=type_,
                source=source,
                reference_id=reference_id,
                metadata=metadata or {},
            )
        )
        return LedgerPosting(transaction=transaction, balance=balance)
