"""
订单API路由 - 订单查询、取消与退款申请
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import CurrentUser, get_current_user, get_order_service, get_refund_service
from application.dto import CancelOrderDTO, OrderDTO, RefundDTO, RefundRequestDTO
from application.services.order_service import OrderService
from application.services.refund_service import RefundService
from core.config import settings
from core.response import Response as ApiResponse, success_response

router = APIRouter(prefix="/orders", tags=["订单"])


@router.get("", summary="我的订单", response_model=ApiResponse[list[OrderDTO]])
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return success_response(data=await service.list_orders(user.id, skip=skip, limit=limit))


@router.get("/refunds/mine", summary="我的退款申请", response_model=ApiResponse[list[RefundDTO]])
async def my_refunds(
    user: CurrentUser = Depends(get_current_user),
    service: RefundService = Depends(get_refund_service),
):
    return success_response(data=await service.list_my_refunds(user.id))


@router.get("/{order_id}", summary="订单详情", response_model=ApiResponse[OrderDTO])
async def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return success_response(data=await service.get_order(user.id, order_id))


@router.post("/{order_id}/cancel", summary="取消待支付订单", response_model=ApiResponse[OrderDTO])
async def cancel_order(
    order_id: int,
    payload: Optional[CancelOrderDTO] = None,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    reason = payload.reason if payload else None
    return success_response(data=await service.cancel_order(user.id, order_id, reason), message="Order cancelled")


@router.post("/{order_id}/refund", summary="申请退款", response_model=ApiResponse[RefundDTO])
async def request_refund(
    order_id: int,
    payload: RefundRequestDTO,
    user: CurrentUser = Depends(get_current_user),
    service: RefundService = Depends(get_refund_service),
):
    """
    申请订单退款

    - **amount**: 退款金额（0 < amount <= 订单总额）
    - **reason**: 退款原因
    - **refund_method**: ORIGINAL_PAYMENT / WALLET / BANK_TRANSFER
    """
    refund = await service.request_refund(user.id, order_id, payload)
    return success_response(data=refund, message="Refund requested")
