"""
购物车API路由
"""
from fastapi import APIRouter, Depends

from api.dependencies import CurrentUser, get_current_user, get_order_service
from application.dto import AddCartItemDTO, CartDTO
from application.services.order_service import OrderService
from core.response import Response as ApiResponse, success_response

router = APIRouter(prefix="/cart", tags=["购物车"])


@router.get("", summary="查看购物车", response_model=ApiResponse[CartDTO])
async def get_cart(
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return success_response(data=await service.get_cart(user.id))


@router.post("/items", summary="加入购物车", response_model=ApiResponse[CartDTO])
async def add_item(
    payload: AddCartItemDTO,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """重复加入同一课程包不会增加数量"""
    return success_response(data=await service.add_to_cart(user.id, payload.package_id), message="Added to cart")


@router.delete("/items/{package_id}", summary="移出购物车", response_model=ApiResponse[CartDTO])
async def remove_item(
    package_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return success_response(data=await service.remove_from_cart(user.id, package_id), message="Removed from cart")
