"""
支付领域实体 - 课程支付聚合根及其派生记录

业务规则：
1. 订单ID全局唯一，且不超过网关限制的 50 个字符
2. 分账启用时 platform_fee + instructor_share == amount
3. 未分账时 platform_fee == 0 且 instructor_share == amount
4. 支付只会从 pending 迁移一次到终态（paid/failed/expired），永不删除
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
import time
import uuid

from domain.common.exceptions import DomainValidationException
from domain.payment.fee_policy import MerchantCredentials, SplitBreakdown


ORDER_ID_MAX_LENGTH = 50


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class RevenueSplitStatus(str, Enum):
    PENDING = "pending"
    CALCULATED = "calculated"
    PAID_OUT = "paid_out"


class OutboxTask(str, Enum):
    """支付成功后的第二阶段记账任务"""
    ENROLLMENT = "enrollment"
    REVENUE_SPLIT = "revenue_split"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def build_order_id(course_id: str, user_id: str, timestamp_ms: Optional[int] = None) -> str:
    """ord-{course[:8]}-{user[:8]}-{timestampMs}"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    order_id = f"ord-{course_id[:8]}-{user_id[:8]}-{timestamp_ms}"
    validate_order_id(order_id)
    return order_id


def validate_order_id(order_id: str) -> None:
    if not order_id:
        raise DomainValidationException("Order id is required", field="order_id")
    if len(order_id) > ORDER_ID_MAX_LENGTH:
        raise DomainValidationException(
            f"Order id exceeds {ORDER_ID_MAX_LENGTH} characters: {order_id}",
            field="order_id",
        )


@dataclass
class Course:
    """课程只读模型（课程表由外部管理）"""

    id: str
    title: str
    price: int
    instructor_id: str
    description: Optional[str] = None

    @property
    def is_free(self) -> bool:
        return self.price <= 0


@dataclass
class InstructorPaymentSettings:
    """讲师自己的商户凭证"""

    instructor_id: str
    client_key: str = ""
    server_key: str = ""
    is_production: bool = False
    is_active: bool = True

    @property
    def credentials(self) -> Optional[MerchantCredentials]:
        """未激活或缺少任一密钥时视为不可用"""
        if not self.is_active or not self.client_key or not self.server_key:
            return None
        return MerchantCredentials(
            client_key=self.client_key,
            server_key=self.server_key,
            is_production=self.is_production,
        )


@dataclass
class Payment:
    """
    支付聚合根 - 一次结账尝试

    费用拆分在结账时固定下来，结算时直接使用，不重新计算。
    """

    id: Optional[str]
    order_id: str
    user_id: str
    course_id: str
    instructor_id: Optional[str]
    amount: int
    status: PaymentStatus = PaymentStatus.PENDING
    gateway_transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    split_payment_enabled: bool = False
    platform_fee: int = 0
    instructor_share: int = 0
    platform_fee_percentage: Decimal = field(default_factory=lambda: Decimal("0"))

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        validate_order_id(self.order_id)
        self._validate_amount()
        self._validate_breakdown()
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)

    @classmethod
    def create_pending(
        cls,
        *,
        order_id: str,
        user_id: str,
        course_id: str,
        instructor_id: Optional[str],
        breakdown: SplitBreakdown,
        split_enabled: bool,
    ) -> "Payment":
        now = datetime.now(timezone.utc)
        return cls(
            id=_new_id(),
            order_id=order_id,
            user_id=user_id,
            course_id=course_id,
            instructor_id=instructor_id,
            amount=breakdown.total_amount,
            status=PaymentStatus.PENDING,
            split_payment_enabled=split_enabled,
            platform_fee=breakdown.platform_fee,
            instructor_share=breakdown.instructor_share,
            platform_fee_percentage=breakdown.platform_fee_percentage,
            created_at=now,
            updated_at=now,
        )

    def _validate_amount(self) -> None:
        if self.amount <= 0:
            raise DomainValidationException(
                f"Payment amount must be positive: {self.amount}",
                field="amount",
            )

    def _validate_breakdown(self) -> None:
        if self.split_payment_enabled:
            if self.platform_fee + self.instructor_share != self.amount:
                raise DomainValidationException(
                    "platform_fee + instructor_share must equal amount",
                    field="platform_fee",
                )
        elif self.platform_fee != 0 or self.instructor_share != self.amount:
            raise DomainValidationException(
                "Direct payments carry no platform fee",
                field="platform_fee",
            )

    @property
    def breakdown(self) -> SplitBreakdown:
        return SplitBreakdown(
            total_amount=self.amount,
            platform_fee=self.platform_fee,
            instructor_share=self.instructor_share,
            platform_fee_percentage=self.platform_fee_percentage,
        )

    def apply_status(
        self,
        new_status: PaymentStatus,
        *,
        transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """条件迁移：只有 pending 状态会被修改

        pending -> pending 只记录交易号与支付方式。返回是否修改了记录。
        """
        if self.status is not PaymentStatus.PENDING:
            return False
        now = now or datetime.now(timezone.utc)
        if transaction_id:
            self.gateway_transaction_id = transaction_id
        if payment_method:
            self.payment_method = payment_method
        self.status = new_status
        if new_status is PaymentStatus.PAID:
            self.paid_at = now
        self.updated_at = now
        return True


@dataclass
class CourseEnrollment:
    id: Optional[str]
    user_id: str
    course_id: str
    enrolled_at: Optional[datetime] = None
    payment_id: Optional[str] = None

    def __post_init__(self):
        self.enrolled_at = _ensure_utc(self.enrolled_at)

    @classmethod
    def grant(cls, user_id: str, course_id: str, payment_id: Optional[str] = None) -> "CourseEnrollment":
        return cls(
            id=_new_id(),
            user_id=user_id,
            course_id=course_id,
            enrolled_at=datetime.now(timezone.utc),
            payment_id=payment_id,
        )


@dataclass
class RevenueSplit:
    """一笔已支付分账交易的收入拆分记录"""

    id: Optional[str]
    payment_id: str
    instructor_id: str
    course_id: str
    total_amount: int
    platform_fee_percentage: Decimal
    platform_fee_amount: int
    instructor_share: int
    status: RevenueSplitStatus = RevenueSplitStatus.CALCULATED
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.platform_fee_amount + self.instructor_share != self.total_amount:
            raise DomainValidationException(
                "platform_fee_amount + instructor_share must equal total_amount",
                field="instructor_share",
            )
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @classmethod
    def from_payment(cls, payment: Payment) -> "RevenueSplit":
        """使用支付记录上冻结的拆分结果"""
        if not payment.split_payment_enabled:
            raise DomainValidationException("Payment is not split-enabled", field="split_payment_enabled")
        if not payment.instructor_id:
            raise DomainValidationException("Payment has no instructor", field="instructor_id")
        now = datetime.now(timezone.utc)
        return cls(
            id=_new_id(),
            payment_id=payment.id,
            instructor_id=payment.instructor_id,
            course_id=payment.course_id,
            total_amount=payment.amount,
            platform_fee_percentage=payment.platform_fee_percentage,
            platform_fee_amount=payment.platform_fee,
            instructor_share=payment.instructor_share,
            status=RevenueSplitStatus.CALCULATED,
            created_at=now,
            updated_at=now,
        )

    def mark_paid_out(self) -> None:
        if self.status is RevenueSplitStatus.PAID_OUT:
            return
        self.status = RevenueSplitStatus.PAID_OUT
        self.updated_at = datetime.now(timezone.utc)


@dataclass
class SettlementOutboxEntry:
    """第二阶段记账失败后的待重试任务"""

    id: Optional[str]
    order_id: str
    task: OutboxTask
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @classmethod
    def enqueue(cls, order_id: str, task: OutboxTask, error: Optional[str] = None) -> "SettlementOutboxEntry":
        now = datetime.now(timezone.utc)
        return cls(
            id=_new_id(),
            order_id=order_id,
            task=task,
            attempts=1,
            last_error=(error or "")[:500] or None,
            created_at=now,
            updated_at=now,
        )

    def record_failure(self, error: str) -> None:
        self.attempts += 1
        self.last_error = error[:500]
        self.updated_at = datetime.now(timezone.utc)

    def mark_done(self) -> None:
        self.status = OutboxStatus.DONE
        self.last_error = None
        self.updated_at = datetime.now(timezone.utc)
