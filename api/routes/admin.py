"""
Admin routes: refund review, payout review and wallet outbox maintenance.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import CurrentUser, get_payout_service, get_refund_service, get_wallet_sync, require_admin
from application.dto import (
    AdminNotesDTO,
    OutboxReportDTO,
    PageDTO,
    PayoutDTO,
    PayoutReviewDTO,
    RefundDTO,
    RefundStatsDTO,
    RejectRefundDTO,
)
from application.services.payout_service import PayoutService
from application.services.refund_service import RefundService
from application.services.wallet_service import WalletSyncService
from core.response import Response as ApiResponse, success_response

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/refunds", summary="List refunds", response_model=ApiResponse[PageDTO])
async def list_refunds(
    status: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _: CurrentUser = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
):
    return success_response(data=await service.list_refunds(status=status, limit=limit, offset=offset))


@router.get("/refunds/stats", summary="Refund statistics", response_model=ApiResponse[RefundStatsDTO])
async def refund_stats(
    _: CurrentUser = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
):
    return success_response(data=await service.get_stats())


@router.get("/refunds/{refund_id}", summary="Refund detail", response_model=ApiResponse[RefundDTO])
async def get_refund(
    refund_id: int,
    _: CurrentUser = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
):
    return success_response(data=await service.get_refund(refund_id))


@router.post("/refunds/{refund_id}/approve", summary="Approve refund", response_model=ApiResponse[RefundDTO])
async def approve_refund(
    refund_id: int,
    payload: Optional[AdminNotesDTO] = None,
    _: CurrentUser = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
):
    notes = payload.admin_notes if payload else None
    return success_response(data=await service.approve(refund_id, notes), message="Refund approved")


@router.post("/refunds/{refund_id}/reject", summary="Reject refund", response_model=ApiResponse[RefundDTO])
async def reject_refund(
    refund_id: int,
    payload: RejectRefundDTO,
    _: CurrentUser = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
):
    return success_response(data=await service.reject(refund_id, payload.reason), message="Refund rejected")


@router.post("/refunds/{refund_id}/processing", summary="Mark refund processing", response_model=ApiResponse[RefundDTO])
async def mark_refund_processing(
    refund_id: int,
    payload: Optional[AdminNotesDTO] = None,
    _: CurrentUser = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
):
    notes = payload.admin_notes if payload else None
    return success_response(data=await service.mark_processing(refund_id, notes), message="Refund processing")


@router.post("/refunds/{refund_id}/complete", summary="Complete refund", response_model=ApiResponse[RefundDTO])
async def complete_refund(
    refund_id: int,
    payload: Optional[AdminNotesDTO] = None,
    _: CurrentUser = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
):
    notes = payload.admin_notes if payload else None
    return success_response(data=await service.complete(refund_id, notes), message="Refund completed")


@router.get("/payouts", summary="List payout requests", response_model=ApiResponse[PageDTO])
async def list_payouts(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _: CurrentUser = Depends(require_admin),
    service: PayoutService = Depends(get_payout_service),
):
    return success_response(data=await service.list_payout_requests(status=status, limit=limit, offset=offset))


@router.post("/payouts/{payout_id}/approve", summary="Approve payout", response_model=ApiResponse[PayoutDTO])
async def approve_payout(
    payout_id: int,
    payload: Optional[PayoutReviewDTO] = None,
    _: CurrentUser = Depends(require_admin),
    service: PayoutService = Depends(get_payout_service),
):
    note = payload.admin_note if payload else None
    return success_response(data=await service.approve(payout_id, note), message="Payout approved")


@router.post("/payouts/{payout_id}/processing", summary="Mark payout processing", response_model=ApiResponse[PayoutDTO])
async def mark_payout_processing(
    payout_id: int,
    payload: Optional[PayoutReviewDTO] = None,
    _: CurrentUser = Depends(require_admin),
    service: PayoutService = Depends(get_payout_service),
):
    note = payload.admin_note if payload else None
    return success_response(data=await service.mark_processing(payout_id, note), message="Payout processing")


@router.post("/payouts/{payout_id}/reject", summary="Reject payout", response_model=ApiResponse[PayoutDTO])
async def reject_payout(
    payout_id: int,
    payload: Optional[PayoutReviewDTO] = None,
    _: CurrentUser = Depends(require_admin),
    service: PayoutService = Depends(get_payout_service),
):
    """The reserved amount is returned to the teacher's available balance."""
    note = payload.admin_note if payload else None
    return success_response(data=await service.reject(payout_id, note), message="Payout rejected")


@router.post("/payouts/{payout_id}/paid", summary="Mark payout paid", response_model=ApiResponse[PayoutDTO])
async def mark_payout_paid(
    payout_id: int,
    payload: Optional[PayoutReviewDTO] = None,
    _: CurrentUser = Depends(require_admin),
    service: PayoutService = Depends(get_payout_service),
):
    note = payload.admin_note if payload else None
    reference = payload.external_reference if payload else None
    return success_response(data=await service.mark_paid(payout_id, note, reference), message="Payout paid")


@router.post("/wallet/outbox/process", summary="Drain pending wallet ledger intents", response_model=ApiResponse[OutboxReportDTO])
async def process_outbox(
    retry_failed: bool = Query(False, description="Reset FAILED intents to PENDING first"),
    _: CurrentUser = Depends(require_admin),
    sync: WalletSyncService = Depends(get_wallet_sync),
):
    if retry_failed:
        await sync.retry_failed()
    return success_response(data=await sync.process_intents())
