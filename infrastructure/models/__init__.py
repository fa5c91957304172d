"""Infrastructure models package exports."""
from .base import Base, metadata
from .catalog import CourseModel, LessonPackageModel, TeacherProfileModel
from .order import CartItemModel, OrderItemModel, OrderModel
from .payment import EnrollmentModel, PaymentModel
from .payout import PayoutMethodModel, PayoutRequestModel
from .refund import RefundModel
from .wallet import WalletModel, WalletOutboxModel, WalletTransactionModel

__all__ = [
    "Base",
    "metadata",
    "TeacherProfileModel",
    "CourseModel",
    "LessonPackageModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentModel",
    "EnrollmentModel",
    "RefundModel",
    "WalletModel",
    "WalletTransactionModel",
    "WalletOutboxModel",
    "PayoutMethodModel",
    "PayoutRequestModel",
]
