"""
钱包API路由 - 教师的钱包余额、流水、收款方式与提现申请
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import CurrentUser, get_payout_service, get_wallet_service, require_teacher
from application.dto import (
    PageDTO,
    PayoutDTO,
    PayoutMethodCreateDTO,
    PayoutMethodDTO,
    PayoutMethodUpdateDTO,
    PayoutRequestCreateDTO,
    WalletDTO,
)
from application.services.payout_service import PayoutService
from application.services.wallet_service import WalletService
from core.response import Response as ApiResponse, success_response

router = APIRouter(prefix="/wallet", tags=["钱包"])


@router.get("/me", summary="我的钱包", response_model=ApiResponse[WalletDTO])
async def my_wallet(
    user: CurrentUser = Depends(require_teacher),
    service: WalletService = Depends(get_wallet_service),
):
    """钱包不存在时自动创建（余额为0）"""
    return success_response(data=await service.get_summary(user.id))


@router.get("/me/transactions", summary="我的钱包流水", response_model=ApiResponse[PageDTO])
async def my_transactions(
    limit: int = Query(20),
    offset: int = Query(0),
    type: Optional[str] = Query(None, description="CREDIT / DEBIT"),
    source: Optional[str] = Query(None, description="COURSE_SALE / REFUND_ADJUSTMENT / PAYOUT / REVERSAL / ..."),
    user: CurrentUser = Depends(require_teacher),
    service: WalletService = Depends(get_wallet_service),
):
    """limit 会被限制在 [1, 100]；未知的 type/source 过滤条件被忽略"""
    page = await service.list_transactions(user.id, limit=limit, offset=offset, type=type, source=source)
    return success_response(data=page)


@router.get("/me/payout-methods", summary="我的收款方式", response_model=ApiResponse[list[PayoutMethodDTO]])
async def my_payout_methods(
    user: CurrentUser = Depends(require_teacher),
    service: PayoutService = Depends(get_payout_service),
):
    return success_response(data=await service.list_payout_methods(user.id))


@router.post("/me/payout-methods", summary="添加收款方式", response_model=ApiResponse[PayoutMethodDTO])
async def add_payout_method(
    payload: PayoutMethodCreateDTO,
    user: CurrentUser = Depends(require_teacher),
    service: PayoutService = Depends(get_payout_service),
):
    """is_default 为 true 时取消其他方式的默认标记"""
    return success_response(data=await service.add_payout_method(user.id, payload), message="Payout method added")


@router.put("/me/payout-methods/{method_id}", summary="修改收款方式", response_model=ApiResponse[PayoutMethodDTO])
async def update_payout_method(
    method_id: int,
    payload: PayoutMethodUpdateDTO,
    user: CurrentUser = Depends(require_teacher),
    service: PayoutService = Depends(get_payout_service),
):
    return success_response(data=await service.update_payout_method(user.id, method_id, payload))


@router.delete("/me/payout-methods/{method_id}", summary="删除收款方式", response_model=ApiResponse[Any])
async def delete_payout_method(
    method_id: int,
    user: CurrentUser = Depends(require_teacher),
    service: PayoutService = Depends(get_payout_service),
):
    await service.delete_payout_method(user.id, method_id)
    return success_response(message="Payout method deleted")


@router.post("/me/payouts", summary="申请提现", response_model=ApiResponse[PayoutDTO])
async def request_payout(
    payload: PayoutRequestCreateDTO,
    user: CurrentUser = Depends(require_teacher),
    service: PayoutService = Depends(get_payout_service),
):
    """金额从可用余额冻结到待提现；余额不足返回 422"""
    return success_response(data=await service.request_payout(user.id, payload), message="Payout requested")


@router.get("/me/payouts", summary="我的提现申请", response_model=ApiResponse[PageDTO])
async def my_payouts(
    limit: int = Query(20),
    offset: int = Query(0),
    user: CurrentUser = Depends(require_teacher),
    service: PayoutService = Depends(get_payout_service),
):
    return success_response(data=await service.list_my_payouts(user.id, limit=limit, offset=offset))
