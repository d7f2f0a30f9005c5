"""
Payments API routes.

Checkout for the browser, the gateway's HTTP notification endpoint and
payment lookups. Keep this thin: orchestration lives in the services.
"""
from __future__ import annotations

import ipaddress

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import (
    get_checkout_service,
    get_identity,
    get_settlement_service,
)
from application.dtos.payments import (
    CheckoutOutcome,
    CheckoutRequest,
    CheckoutResultIn,
    CheckoutSession,
    PaymentOut,
    SettlementResult,
)
from application.services.checkout_service import CheckoutService
from application.services.settlement_service import SettlementService
from core.config import settings
from core.exceptions import UnauthorizedException
from core.i18n import t
from core.logging_config import get_logger
from core.response import Response as ApiResponse, success_response
from core.settings import payment_settings
from domain.identity import Identity


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


def _ip_permitted(remote_ip: str, allowlist: list[str]) -> bool:
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if "/" in entry:
                if rip in ipaddress.ip_network(entry, strict=False):
                    return True
            elif remote_ip == entry:
                return True
        except ValueError:
            continue
    return False


@router.post("/checkout", summary="Start checkout", response_model=ApiResponse[CheckoutSession])
async def start_checkout(
    payload: CheckoutRequest,
    request: Request,
    identity: Identity = Depends(get_identity),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    为课程创建待支付订单并返回 Snap token

    - 免费课程直接报名，不返回 token
    - 讲师未配置收款凭证时返回 400
    """
    session = await service.start_checkout(identity, payload.course_id, origin=request.headers.get("origin"))
    key = "payments.checkout.enrolled" if session.enrolled else "payments.checkout.started"
    return success_response(data=session, message=t(key))


@router.post(
    "/{order_id}/checkout-result",
    summary="Relay checkout callback",
    response_model=ApiResponse[CheckoutOutcome],
)
async def submit_checkout_result(
    order_id: str,
    payload: CheckoutResultIn,
    identity: Identity = Depends(get_identity),
    service: CheckoutService = Depends(get_checkout_service),
):
    outcome = await service.submit_checkout_result(identity, order_id, payload.event, payload.result)
    return success_response(data=outcome, message=outcome.message)


@router.post("/notifications", summary="Gateway HTTP notification", response_model=ApiResponse[SettlementResult])
async def gateway_notification(
    request: Request,
    service: SettlementService = Depends(get_settlement_service),
):
    allowlist = payment_settings.webhook.ip_allowlist or []
    if allowlist:
        remote_ip = request.client.host if request.client else ""
        if not _ip_permitted(remote_ip, allowlist):
            logger.warning("notification_ip_rejected", remote_ip=remote_ip)
            raise UnauthorizedException("Notification source not allowed")

    body = await request.body()
    result = await service.handle_notification(body)
    return success_response(data=result, message=t("payments.notification.received"))


@router.post("/{order_id}/reconcile", summary="Poll gateway status", response_model=ApiResponse[SettlementResult])
async def reconcile_payment(
    order_id: str,
    identity: Identity = Depends(get_identity),
    checkout: CheckoutService = Depends(get_checkout_service),
    settlement: SettlementService = Depends(get_settlement_service),
):
    # 只允许订单所有者或管理员触发
    await checkout.get_payment(identity, order_id)
    result = await settlement.reconcile_from_gateway(order_id)
    return success_response(data=result, message=t("payments.reconciled"))


@router.get("", summary="List my payments", response_model=ApiResponse[list[PaymentOut]])
async def list_payments(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    identity: Identity = Depends(get_identity),
    service: CheckoutService = Depends(get_checkout_service),
):
    payments = await service.list_payments(identity, skip=skip, limit=limit)
    return success_response(data=[PaymentOut.model_validate(p) for p in payments])


@router.get("/{order_id}", summary="Get payment", response_model=ApiResponse[PaymentOut])
async def get_payment(
    order_id: str,
    identity: Identity = Depends(get_identity),
    service: CheckoutService = Depends(get_checkout_service),
):
    payment = await service.get_payment(identity, order_id)
    return success_response(data=PaymentOut.model_validate(payment))
