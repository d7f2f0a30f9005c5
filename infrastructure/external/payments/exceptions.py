"""
Exceptions for the payment gateway mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


USER_MESSAGE_MAX_LENGTH = 200


def _truncate(message: str) -> str:
    if len(message) <= USER_MESSAGE_MAX_LENGTH:
        return message
    return message[: USER_MESSAGE_MAX_LENGTH - 3] + "..."


class GatewayError(BusinessException):
    """网关返回非 2xx 或错误结构；error_messages 保留网关原始信息"""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int | None = None,
        error_messages: Optional[list[str]] = None,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "status_code": status_code}
        if error_messages:
            full_details["error_messages"] = error_messages
        if details:
            full_details.update(details)
        self.status_code = status_code
        self.error_messages = list(error_messages or [])
        super().__init__(
            code=PaymentCode.GATEWAY_ERROR,
            message=_truncate(message),
            error_type="GatewayError",
            details=full_details,
            message_key="payments.gateway.error",
            format_params={"message": _truncate(message)},
        )


class GatewayRecoverableError(BusinessException):
    """超时 / 网络错误，可重试"""

    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.GATEWAY_RECOVERABLE,
            message=_truncate(message),
            error_type="GatewayRecoverableError",
            details=full_details,
            message_key="payments.gateway.unavailable",
        )


class GatewaySignatureError(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="GatewaySignatureError",
            details=full_details,
            message_key="payments.signature.invalid",
        )


class ScriptLoadError(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SCRIPT_LOAD_ERROR,
            message=message,
            error_type="ScriptLoadError",
            details=full_details,
            message_key="payments.script.error",
        )


class CheckoutDismissedError(BusinessException):
    """用户关闭了支付浮层；支付保持 pending"""

    def __init__(self, order_id: Optional[str] = None):
        super().__init__(
            code=PaymentCode.CHECKOUT_DISMISSED,
            message="Checkout closed before payment was completed",
            error_type="CheckoutDismissed",
            details={"order_id": order_id} if order_id else None,
            message_key="payments.checkout.dismissed",
        )
