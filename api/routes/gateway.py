"""
Companion endpoints used by the instructor settings page and the legacy checkout.

These keep the plain ``{status, message, ...}`` body the frontend already
parses instead of the unified Response envelope.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from api.dependencies import get_gateway
from application.dtos.payments import (
    CheckoutCallbacks,
    CustomerDetails,
    ItemDetail,
    TransactionDescriptor,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.payment.fee_policy import MerchantCredentials
from infrastructure.external.payments.exceptions import GatewayError


router = APIRouter(tags=["Gateway"])
logger = get_logger(__name__)

DEFAULT_CALLBACK_ORIGIN = "http://localhost:5173"


class ConnectionTestIn(BaseModel):
    server_key: Optional[str] = Field(default=None, alias="serverKey")
    is_production: bool = Field(default=False, alias="isProduction")

    model_config = ConfigDict(populate_by_name=True)


class CreateTokenIn(BaseModel):
    payment_data: Optional[dict[str, Any]] = Field(default=None, alias="paymentData")
    instructor_settings: Optional[dict[str, Any]] = Field(default=None, alias="instructorSettings")

    model_config = ConfigDict(populate_by_name=True)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message, **extra})


@router.post("/test-midtrans-connection", summary="Test Midtrans credentials")
async def test_midtrans_connection(
    payload: ConnectionTestIn,
    gateway: PaymentGateway = Depends(get_gateway),
):
    logger.info(
        "connection_test_requested",
        has_server_key=bool(payload.server_key),
        is_production=payload.is_production,
    )
    try:
        result = await gateway.test_connection(payload.server_key or "", payload.is_production)
    except Exception as exc:
        logger.error("connection_test_failed", error=str(exc), exc_info=True)
        return _error(
            500,
            "Failed to test connection. Please check your network and try again.",
            error=str(exc),
        )
    return JSONResponse(
        status_code=200 if result.ok else 400,
        content=result.model_dump(exclude_none=True),
    )


@router.post("/create-payment-token", summary="Create Snap token with instructor credentials")
async def create_payment_token(
    payload: CreateTokenIn,
    request: Request,
    gateway: PaymentGateway = Depends(get_gateway),
):
    data, instructor = payload.payment_data, payload.instructor_settings
    if not data or not instructor:
        return _error(400, "Payment data and instructor settings are required")
    if not instructor.get("midtrans_server_key") or not instructor.get("midtrans_client_key"):
        return _error(400, "Missing Midtrans credentials")

    credentials = MerchantCredentials(
        client_key=str(instructor["midtrans_client_key"]),
        server_key=str(instructor["midtrans_server_key"]),
        is_production=bool(instructor.get("is_production", False)),
    )
    try:
        descriptor = TransactionDescriptor(
            order_id=str(data.get("orderId") or ""),
            gross_amount=data.get("amount"),
            customer_details=CustomerDetails.model_validate(data.get("customerDetails") or {}),
            item_details=[ItemDetail.model_validate(i) for i in data.get("itemDetails") or []],
            callbacks=CheckoutCallbacks.from_base(request.headers.get("origin") or DEFAULT_CALLBACK_ORIGIN),
        )
    except ValidationError as exc:
        return _error(400, "Invalid payment data", details=exc.errors(include_url=False, include_context=False))

    try:
        token = await gateway.create_token(descriptor, credentials)
    except GatewayError as exc:
        return _error(
            exc.status_code or 502,
            exc.message,
            details={"error_messages": exc.error_messages},
        )
    except Exception as exc:
        logger.error("payment_token_failed", order_id=descriptor.order_id, error=str(exc), exc_info=True)
        return _error(500, "Failed to create payment token", error=str(exc))

    logger.info("payment_token_created", order_id=descriptor.order_id)
    return {"status": "success", "token": token.token, "redirect_url": token.redirect_url}


@router.get("/health", summary="Companion health check")
async def companion_health():
    return {"status": "ok", "message": "Server is running"}
