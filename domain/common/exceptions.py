"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class ResourceNotFoundException(BusinessException):
    """资源不存在（支付/订单/课程包/退款/钱包）"""

    def __init__(self, resource: str, identifier: Optional[object] = None):
        details = {"resource": resource}
        if identifier is not None:
            details["id"] = str(identifier)
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=f"{resource} not found",
            error_type=f"{resource.replace(' ', '')}NotFound",
            details=details,
        )


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class InsufficientBalanceException(DomainValidationException):
    """钱包可用余额不足以扣款或提现"""

    def __init__(self, owner_id: int, amount: object, available: object):
        super().__init__(
            "Insufficient balance",
            field="amount",
            details={"owner_id": owner_id, "amount": str(amount), "available": str(available)},
        )


class AuthorizationException(BusinessException):
    """操作者不拥有该资源"""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message,
            error_type="Forbidden",
        )


class AlreadyEnrolledException(BusinessException):
    def __init__(self, package_id: int):
        super().__init__(
            code=BusinessCode.ALREADY_ENROLLED,
            message="You are already enrolled in this package",
            error_type="AlreadyEnrolled",
            details={"package_id": package_id},
            field="package_id",
        )


class InvalidStateTransitionException(BusinessException):
    """状态机不允许的转换"""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            code=BusinessCode.INVALID_STATE,
            message=f"Cannot move {entity} from {current} to {target}",
            error_type="InvalidStateTransition",
            details={"entity": entity, "current": current, "target": target},
            field="status",
        )


class InvalidPaymentStateException(BusinessException):
    """支付既没有课程包也没有订单引用"""

    def __init__(self, payment_id: int):
        super().__init__(
            code=BusinessCode.INVALID_STATE,
            message="Payment references neither a package nor an order",
            error_type="InvalidPaymentState",
            details={"payment_id": payment_id},
        )


class RefundInProgressException(BusinessException):
    def __init__(self, order_id: int):
        super().__init__(
            code=BusinessCode.REFUND_IN_PROGRESS,
            message="A refund request is already in progress for this order",
            error_type="RefundInProgress",
            details={"order_id": order_id},
        )


class PaymentVerificationException(BusinessException):
    """网关返回的收款凭证与支付记录不一致"""

    def __init__(self, payment_id: int, reason: str):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message="Payment could not be verified with the payment provider",
            error_type="PaymentVerificationFailed",
            details={"payment_id": payment_id, "reason": reason},
        )
