"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输

金额字段为 Decimal，JSON 序列化为字符串，避免浮点误差。
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_serializer

from domain.refund.entity import RefundMethod, RefundStatus


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


# ---------- 请求 ----------

class CreateIntentDTO(DTOBase):
    """单课程包下单"""
    package_id: int = Field(..., gt=0, description="课程包ID")


class ConfirmPaymentDTO(DTOBase):
    payment_id: int = Field(..., gt=0)
    payment_intent_id: Optional[str] = Field(None, description="网关收款凭证ID（可选）")


class AddCartItemDTO(DTOBase):
    package_id: int = Field(..., gt=0)


class CancelOrderDTO(DTOBase):
    reason: Optional[str] = Field(None, max_length=500)


class RefundRequestDTO(DTOBase):
    amount: Decimal = Field(..., description="退款金额")
    reason: str = Field(..., min_length=1, max_length=2000)
    reason_category: Optional[str] = Field(None, max_length=50)
    refund_method: RefundMethod = RefundMethod.ORIGINAL_PAYMENT
    bank_details: Optional[dict[str, Any]] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("reason")
    @classmethod
    def _strip_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("退款原因不能为空")
        return v


class AdminNotesDTO(DTOBase):
    admin_notes: Optional[str] = Field(None, max_length=2000)


class RejectRefundDTO(DTOBase):
    reason: str = Field(..., min_length=1, max_length=2000)


class PayoutMethodCreateDTO(DTOBase):
    type: str = Field(..., description="BANK_TRANSFER / GRABPAY / TOUCH_N_GO / PAYPAL / OTHER")
    label: str = Field(..., min_length=1, max_length=100)
    details: dict[str, Any] = Field(default_factory=dict, description="收款账户信息")
    is_default: bool = False


class PayoutMethodUpdateDTO(DTOBase):
    label: Optional[str] = Field(None, max_length=100)
    details: Optional[dict[str, Any]] = None
    is_default: Optional[bool] = None


class PayoutRequestCreateDTO(DTOBase):
    amount: Decimal = Field(..., gt=0, description="提现金额")
    method_id: Optional[int] = Field(None, gt=0, description="收款方式ID，为空则使用默认方式")
    note: Optional[str] = Field(None, max_length=1000)


class PayoutReviewDTO(DTOBase):
    admin_note: Optional[str] = Field(None, max_length=2000)
    external_reference: Optional[str] = Field(None, max_length=200, description="打款流水号（标记已打款时）")


# ---------- 响应 ----------

class PaymentIntentDTO(DTOBase):
    payment_id: int
    client_secret: Optional[str] = None
    payment_intent_id: Optional[str] = None
    amount: Decimal
    platform_commission: Decimal
    teacher_earning: Decimal
    currency: str
    package_id: Optional[int] = None
    order_id: Optional[int] = None
    order_no: Optional[str] = None


class ConfirmationDTO(DTOBase):
    payment_id: int
    status: str
    already_confirmed: bool = False
    enrollment_id: Optional[int] = None
    order_id: Optional[int] = None
    enrollment_ids: list[int] = Field(default_factory=list)


class CartItemDTO(DTOBase):
    package_id: int
    package_name: Optional[str] = None
    course_id: Optional[int] = None
    course_title: Optional[str] = None
    price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    final_price: Optional[Decimal] = None
    quantity: int = 1
    available: bool = True
    added_at: Optional[datetime] = None


class CartDTO(DTOBase):
    items: list[CartItemDTO]
    total: Decimal
    count: int


class OrderItemDTO(DTOBase):
    id: int
    package_id: int
    price: Decimal
    discount: Decimal
    final_price: Decimal


class OrderDTO(DTOBase):
    id: int
    order_no: str
    user_id: int
    total_amount: Decimal
    status: str
    items: list[OrderItemDTO]
    paid_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None


class RefundDTO(DTOBase):
    id: int
    order_id: int
    user_id: int
    amount: Decimal
    reason: str
    reason_category: Optional[str] = None
    status: RefundStatus
    refund_method: RefundMethod
    bank_details: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    provider_refund_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class RefundStatsDTO(DTOBase):
    total: int
    by_status: dict[str, int]
    total_amount: Decimal
    completed_amount: Decimal


class WalletDTO(DTOBase):
    owner_id: int
    available_balance: Decimal
    pending_payout: Decimal
    currency: str


class WalletTransactionDTO(DTOBase):
    id: int
    amount: Decimal
    type: str
    source: str
    reference_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class PayoutMethodDTO(DTOBase):
    id: int
    type: str
    label: str
    details: dict[str, Any] = Field(default_factory=dict)
    is_default: bool
    is_verified: bool
    created_at: Optional[datetime] = None


class PayoutDTO(DTOBase):
    id: int
    wallet_id: int
    amount: Decimal
    method_id: Optional[int] = None
    status: str
    note: Optional[str] = None
    admin_note: Optional[str] = None
    external_reference: Optional[str] = None
    requested_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


class PageDTO(DTOBase):
    items: list[Any]
    total: int
    limit: int
    offset: int


class EarningEntryDTO(DTOBase):
    payment_id: int
    order_item_id: Optional[int] = None
    course_id: int
    package_id: int
    gross: Decimal
    teacher_earning: Decimal
    paid_at: Optional[datetime] = None


class TeacherEarningsDTO(DTOBase):
    total_earnings: Decimal
    total_gross: Decimal
    sales: int
    entries: list[EarningEntryDTO]


class CourseEarningsDTO(DTOBase):
    course_id: int
    course_title: str
    total_earnings: Decimal
    total_gross: Decimal
    sales: int


class OutboxReportDTO(DTOBase):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_ids: list[int] = Field(default_factory=list)


class TeacherSyncDTO(DTOBase):
    teacher_profile_id: int
    owner_id: int
    payment_count: int
    gross: Decimal
    refunded_portion: Decimal
    net: Decimal
    status: str  # synced / already_synced / skipped / would_sync / error
    error: Optional[str] = None


class HistoricalSyncReportDTO(DTOBase):
    dry_run: bool
    payments_scanned: int
    teachers: list[TeacherSyncDTO]
    wallets_synced: int = 0
    total_net: Decimal = Decimal("0")
    errors: int = 0
