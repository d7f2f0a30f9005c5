"""
Payment DTOs (Pydantic v2) used at application boundaries.

Gateway-facing shapes mirror the hosted checkout (Snap) wire format; the
checkout/session shapes are what the HTTP API returns to the browser.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.payment.entity import PaymentStatus


ITEM_NAME_MAX_LENGTH = 50


class CustomerDetails(BaseModel):
    first_name: str = "Anonymous"
    last_name: str = "User"
    email: Optional[str] = None
    phone: Optional[str] = None


class ItemDetail(BaseModel):
    id: str
    price: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    name: str

    @field_validator("name")
    @classmethod
    def _truncate_name(cls, v: str) -> str:
        return (v or "")[:ITEM_NAME_MAX_LENGTH]


class CheckoutCallbacks(BaseModel):
    finish: str
    error: str
    pending: str

    @classmethod
    def from_base(cls, base_url: str) -> "CheckoutCallbacks":
        base = base_url.rstrip("/")
        return cls(
            finish=f"{base}/payment/finish",
            error=f"{base}/payment/error",
            pending=f"{base}/payment/pending",
        )


class TransactionDescriptor(BaseModel):
    """createToken 的输入：订单号、金额、客户与商品明细"""

    order_id: str = Field(min_length=1, max_length=50)
    gross_amount: int = Field(gt=0)
    customer_details: CustomerDetails = Field(default_factory=CustomerDetails)
    item_details: list[ItemDetail] = Field(default_factory=list)
    callbacks: Optional[CheckoutCallbacks] = None
    secure: bool = True

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "transaction_details": {
                "order_id": self.order_id,
                "gross_amount": self.gross_amount,
            },
            "credit_card": {"secure": self.secure},
            "customer_details": self.customer_details.model_dump(exclude_none=True),
            "item_details": [item.model_dump() for item in self.item_details],
        }
        if self.callbacks is not None:
            payload["callbacks"] = self.callbacks.model_dump()
        return payload


class SnapToken(BaseModel):
    token: str
    redirect_url: Optional[str] = None


class CheckoutScript(BaseModel):
    """浏览器需要注入的 <script> 标签描述"""

    src: str
    client_key: str
    is_production: bool

    def as_attributes(self) -> dict[str, str]:
        return {"src": self.src, "data-client-key": self.client_key}


class CheckoutResult(BaseModel):
    """Snap 浮层 onSuccess / onPending 回调的结果"""

    outcome: Literal["success", "pending"]
    transaction_status: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_type: Optional[str] = None
    order_id: Optional[str] = None
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None


class GatewayTransactionStatus(BaseModel):
    """GET /v2/{order_id}/status 与 HTTP notification 共用的字段"""

    order_id: str
    transaction_status: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_type: Optional[str] = None
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None
    fraud_status: Optional[str] = None
    signature_key: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    model_config = ConfigDict(extra="ignore")


class ConnectionTestResult(BaseModel):
    status: Literal["success", "error", "warning"]
    message: str
    details: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


# ---- HTTP API shapes ----

class CheckoutRequest(BaseModel):
    course_id: str = Field(min_length=1)


class SplitBreakdownOut(BaseModel):
    total_amount: int
    platform_fee: int
    instructor_share: int
    platform_fee_percentage: Decimal


class CheckoutSession(BaseModel):
    """start_checkout 的结果；免费课程直接报名，没有 token"""

    course_id: str
    enrolled: bool = False
    order_id: Optional[str] = None
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    script: Optional[CheckoutScript] = None
    split_payment_enabled: bool = False
    breakdown: Optional[SplitBreakdownOut] = None
    formatted_price: Optional[str] = None


class CheckoutResultIn(BaseModel):
    """浏览器转发的 Snap 回调：event 为 success | pending | error | close"""

    event: Literal["success", "pending", "error", "close"]
    result: dict[str, Any] = Field(default_factory=dict)


class CheckoutOutcome(BaseModel):
    order_id: str
    status: str
    message: str
    enrolled: bool = False


class PaymentOut(BaseModel):
    id: Optional[str]
    order_id: str
    user_id: str
    course_id: str
    instructor_id: Optional[str] = None
    amount: int
    status: PaymentStatus
    gateway_transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    split_payment_enabled: bool
    platform_fee: int
    instructor_share: int
    platform_fee_percentage: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SettlementResult(BaseModel):
    order_id: str
    status: str
    applied: bool
    enrollment_created: bool = False
    revenue_split_created: bool = False
    deferred_tasks: list[str] = Field(default_factory=list)
