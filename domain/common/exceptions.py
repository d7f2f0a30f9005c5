"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        message_key: str | None = None,
        format_params: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key=message_key or "validation.domain",
            format_params=format_params,
        )


class PermissionDeniedException(BusinessException):
    def __init__(self, capability: str, *, role: Optional[str] = None):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=f"Missing capability: {capability}",
            error_type="PermissionDenied",
            details={"capability": capability, "role": role},
            message_key="auth.permission_denied",
        )


class PaymentUnavailableException(BusinessException):
    """讲师未配置（或未激活）收款凭证，无法发起支付"""

    def __init__(self, instructor_id: Optional[str] = None, *, reason: str = "missing_credentials"):
        details = {"instructor_id": instructor_id, "reason": reason} if instructor_id else {"reason": reason}
        super().__init__(
            code=PaymentCode.PAYMENT_UNAVAILABLE,
            message="Payment unavailable",
            error_type="PaymentUnavailable",
            details=details,
            message_key="payments.checkout.unavailable",
        )


class PaymentNotFoundException(BusinessException):
    def __init__(self, identifier: str):
        super().__init__(
            code=PaymentCode.PAYMENT_NOT_FOUND,
            message=f"Payment not found: {identifier}",
            error_type="PaymentNotFound",
            details={"identifier": identifier},
            message_key="payments.not_found",
        )


class PaymentAlreadyExistsException(BusinessException):
    def __init__(self, order_id: str):
        super().__init__(
            code=PaymentCode.PAYMENT_ALREADY_EXISTS,
            message=f"Payment already exists for order {order_id}",
            error_type="PaymentAlreadyExists",
            details={"order_id": order_id},
            field="order_id",
            message_key="payments.already_exists",
        )


class CourseNotFoundException(BusinessException):
    def __init__(self, course_id: str):
        super().__init__(
            code=PaymentCode.COURSE_NOT_FOUND,
            message="Course not found",
            error_type="CourseNotFound",
            details={"course_id": course_id},
            message_key="course.not_found",
        )


class PayoutNotFoundException(BusinessException):
    def __init__(self, payout_id: str):
        super().__init__(
            code=PaymentCode.PAYOUT_NOT_FOUND,
            message="Payout request not found",
            error_type="PayoutNotFound",
            details={"payout_id": payout_id},
            message_key="payouts.not_found",
        )


class PayoutTransitionException(BusinessException):
    def __init__(self, payout_id: Optional[str], current: str, target: str):
        super().__init__(
            code=PaymentCode.PAYOUT_INVALID_TRANSITION,
            message=f"Cannot move payout from {current} to {target}",
            error_type="PayoutInvalidTransition",
            details={"payout_id": payout_id, "current": current, "target": target},
            field="status",
            message_key="payouts.invalid_transition",
            format_params={"current": current, "target": target},
        )


class ProfileNotFoundException(BusinessException):
    def __init__(self, user_id: str):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Profile not found",
            error_type="ProfileNotFound",
            details={"user_id": user_id},
            message_key="profile.not_found",
        )


class DuplicateRecordException(BusinessException):
    """唯一约束冲突（报名、分账记录等幂等写入）"""

    def __init__(self, entity: str, key: str):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message=f"{entity} already exists: {key}",
            error_type="DuplicateRecord",
            details={"entity": entity, "key": key},
        )
