"""
Payments API routes.

Thin layer over the checkout, confirmation, refund and earnings services;
no gateway SDK details here.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import (
    CurrentUser,
    get_checkout_service,
    get_confirmation_service,
    get_current_user,
    get_earnings_service,
    get_refund_service,
    require_teacher,
)
from application.dto import (
    ConfirmationDTO,
    ConfirmPaymentDTO,
    CourseEarningsDTO,
    CreateIntentDTO,
    PaymentIntentDTO,
    RefundDTO,
    RefundRequestDTO,
    TeacherEarningsDTO,
)
from application.services.checkout_service import CheckoutService
from application.services.earnings_service import EarningsService
from application.services.payment_confirmation_service import PaymentConfirmationService
from application.services.refund_service import RefundService
from core.response import Response as ApiResponse, success_response


router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-intent", summary="Create a payment for one package", response_model=ApiResponse[PaymentIntentDTO])
async def create_intent(
    payload: CreateIntentDTO,
    user: CurrentUser = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    intent = await service.create_package_intent(user.id, payload.package_id)
    return success_response(data=intent, message="Payment intent created")


@router.post("/cart/create-intent", summary="Create an order and payment from the cart", response_model=ApiResponse[PaymentIntentDTO])
async def create_cart_intent(
    user: CurrentUser = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    intent = await service.create_cart_intent(user.id)
    return success_response(data=intent, message="Payment intent created")


@router.post("/confirm", summary="Confirm a payment", response_model=ApiResponse[ConfirmationDTO])
async def confirm_payment(
    payload: ConfirmPaymentDTO,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentConfirmationService = Depends(get_confirmation_service),
):
    result = await service.confirm(user.id, payload.payment_id, payload.payment_intent_id)
    message = "Payment already confirmed" if result.already_confirmed else "Payment confirmed"
    return success_response(data=result, message=message)


@router.get("/teacher/earnings", summary="Teacher earnings", response_model=ApiResponse[TeacherEarningsDTO])
async def teacher_earnings(
    user: CurrentUser = Depends(require_teacher),
    service: EarningsService = Depends(get_earnings_service),
):
    return success_response(data=await service.get_teacher_earnings(user.id))


@router.get("/teacher/earnings-by-course", summary="Teacher earnings per course", response_model=ApiResponse[list[CourseEarningsDTO]])
async def teacher_earnings_by_course(
    user: CurrentUser = Depends(require_teacher),
    service: EarningsService = Depends(get_earnings_service),
):
    return success_response(data=await service.get_teacher_earnings_by_course(user.id))


@router.post("/{payment_id}/refund", summary="Request a refund for a payment's order", response_model=ApiResponse[RefundDTO])
async def request_payment_refund(
    payment_id: int,
    payload: RefundRequestDTO,
    user: CurrentUser = Depends(get_current_user),
    service: RefundService = Depends(get_refund_service),
):
    refund = await service.request_refund_for_payment(user.id, payment_id, payload)
    return success_response(data=refund, message="Refund requested")
