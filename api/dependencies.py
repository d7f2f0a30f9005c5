"""
API依赖项 - 身份解析与服务装配

Bearer token 由外部认证服务签发（HS256），这里只做校验并解析出 Identity。
服务实例按请求装配；测试中通过 app.dependency_overrides 替换 get_uow_factory / get_gateway。
"""
from typing import AsyncIterator, Callable, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.ports.payment_gateway import PaymentGateway
from application.services.checkout_service import CheckoutService
from application.services.earnings_service import EarningsService
from application.services.payout_service import PayoutService
from application.services.platform_config_service import PlatformConfigService
from application.services.role_service import RoleService
from application.services.settlement_service import SettlementService
from core.config import settings
from core.exceptions import TokenInvalidException, UnauthorizedException
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.identity import Identity, Role
from domain.payout.entity import PayoutMethod
from infrastructure.external.payments import get_payment_gateway
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

logger = get_logger(__name__)

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token issued by the auth service",
    auto_error=False,
)


def decode_identity(token: str) -> Identity:
    """校验签名并解析 sub / role / email；未知角色按 student 处理"""
    try:
        claims = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_aud": False, "require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenInvalidException("expired")
    except jwt.InvalidTokenError as exc:
        logger.info("token_rejected", error=str(exc))
        raise TokenInvalidException("invalid")

    raw_role = claims.get(settings.JWT_ROLE_CLAIM)
    if isinstance(raw_role, dict):
        # 部分认证服务把角色放在 app_metadata/user_metadata 里
        raw_role = raw_role.get("role")
    try:
        role = Role(raw_role) if raw_role else Role.STUDENT
    except ValueError:
        role = Role.STUDENT
    return Identity(user_id=str(claims["sub"]), role=role, email=claims.get("email"))


async def get_identity(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Identity:
    """获取当前调用方身份"""
    if bearer_token is None or not bearer_token.credentials:
        raise UnauthorizedException("Missing bearer token")
    return decode_identity(bearer_token.credentials)


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


async def get_gateway() -> AsyncIterator[PaymentGateway]:
    gateway = get_payment_gateway()
    try:
        yield gateway
    finally:
        await gateway.aclose()


def get_platform_config(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> PlatformConfigService:
    return PlatformConfigService(uow_factory, payment_settings.fee_configuration())


def get_settlement_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_gateway),
    config: PlatformConfigService = Depends(get_platform_config),
) -> SettlementService:
    return SettlementService(
        uow_factory,
        gateway,
        config,
        verify_signature=payment_settings.webhook.verify_signature,
    )


def get_checkout_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_gateway),
    config: PlatformConfigService = Depends(get_platform_config),
    settlement: SettlementService = Depends(get_settlement_service),
) -> CheckoutService:
    return CheckoutService(
        uow_factory,
        gateway,
        config,
        settlement,
        callback_base_url=settings.CHECKOUT_CALLBACK_BASE_URL,
    )


def get_payout_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> PayoutService:
    return PayoutService(
        uow_factory,
        minimum_amount=payment_settings.payouts.minimum_amount,
        default_method=PayoutMethod(payment_settings.payouts.default_method),
    )


def get_earnings_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> EarningsService:
    return EarningsService(uow_factory)


def get_role_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> RoleService:
    return RoleService(uow_factory)
