"""
API依赖项 - 认证、授权与服务装配

本服务只校验 JWT（由账号服务签发），不签发令牌。
服务实例按请求装配，数据库会话工厂与支付网关来自应用生命周期
中创建并挂在 app.state 上的对象。
"""
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from application.ports.payment_gateway import PaymentGateway
from application.services.checkout_service import CheckoutService
from application.services.earnings_service import EarningsService
from application.services.order_service import OrderService
from application.services.payment_confirmation_service import PaymentConfirmationService
from application.services.payout_service import PayoutService
from application.services.refund_service import RefundService
from application.services.wallet_service import WalletService, WalletSyncService
from core.config import settings
from core.exceptions import TokenExpiredException, UnauthorizedException
from domain.common.exceptions import AuthorizationException
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)

ROLE_STUDENT = "student"
ROLE_TEACHER = "teacher"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str = ROLE_STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == ROLE_TEACHER


def decode_token(token: str) -> CurrentUser:
    """校验令牌签名与过期时间，解析 sub（用户ID）与 role"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredException()
    except jwt.InvalidTokenError:
        raise UnauthorizedException("Invalid authentication credentials")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedException("Invalid token subject")
    role = str(payload.get("role") or ROLE_STUDENT).lower()
    return CurrentUser(id=user_id, role=role)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Authentication credentials were not provided")
    return decode_token(credentials.credentials)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise AuthorizationException("Admin role required")
    return user


async def require_teacher(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """钱包与收益接口只对教师开放"""
    if not user.is_teacher:
        raise AuthorizationException("Teacher role required")
    return user


def get_uow_factory(request: Request) -> Callable[..., SQLAlchemyUnitOfWork]:
    return partial(SQLAlchemyUnitOfWork, request.app.state.db.session_factory)


def get_gateway(request: Request) -> Optional[PaymentGateway]:
    return getattr(request.app.state, "payment_gateway", None)


def get_wallet_sync(uow_factory=Depends(get_uow_factory)) -> WalletSyncService:
    return WalletSyncService(uow_factory)


def get_checkout_service(uow_factory=Depends(get_uow_factory), gateway=Depends(get_gateway)) -> CheckoutService:
    return CheckoutService(uow_factory, gateway)


def get_confirmation_service(
    uow_factory=Depends(get_uow_factory),
    gateway=Depends(get_gateway),
    wallet_sync: WalletSyncService = Depends(get_wallet_sync),
) -> PaymentConfirmationService:
    return PaymentConfirmationService(uow_factory, gateway, wallet_sync)


def get_refund_service(
    uow_factory=Depends(get_uow_factory),
    gateway=Depends(get_gateway),
    wallet_sync: WalletSyncService = Depends(get_wallet_sync),
) -> RefundService:
    return RefundService(uow_factory, gateway, wallet_sync)


def get_order_service(uow_factory=Depends(get_uow_factory)) -> OrderService:
    return OrderService(uow_factory)


def get_wallet_service(uow_factory=Depends(get_uow_factory)) -> WalletService:
    return WalletService(uow_factory)


def get_earnings_service(uow_factory=Depends(get_uow_factory)) -> EarningsService:
    return EarningsService(uow_factory)


def get_payout_service(uow_factory=Depends(get_uow_factory)) -> PayoutService:
    return PayoutService(uow_factory)
