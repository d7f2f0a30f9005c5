"""
Payout / earnings DTOs (Pydantic v2).
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from domain.payout.entity import PayoutMethod, PayoutStatus


class PayoutRequestIn(BaseModel):
    amount: int = Field(gt=0)
    payout_method: Optional[PayoutMethod] = None


class PayoutRequestOut(BaseModel):
    accepted: bool
    message: str


class PayoutApproveIn(BaseModel):
    batch_reference: Optional[str] = None
    notes: Optional[str] = None


class PayoutCompleteIn(BaseModel):
    transaction_reference: Optional[str] = None


class PayoutCancelIn(BaseModel):
    reason: Optional[str] = None


class BatchApproveIn(BaseModel):
    instructor_ids: list[str] = Field(min_length=1)
    payout_method: PayoutMethod = PayoutMethod.MANUAL_TRANSFER


class BatchApproveOut(BaseModel):
    approved: int
    batch_reference: Optional[str] = None


class PayoutOut(BaseModel):
    id: str
    instructor_id: str
    total_amount: int
    transaction_count: int
    payout_method: PayoutMethod
    status: PayoutStatus
    scheduled_date: Optional[date] = None
    processed_at: Optional[datetime] = None
    batch_reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AdminPayoutSummary(BaseModel):
    pending_requests: int = 0
    total_pending_amount: int = 0
    processing_batches: int = 0
    completed_this_month: int = 0
    instructors_awaiting_payout: int = 0


class BankAccountIn(BaseModel):
    bank_name: str = Field(min_length=1, max_length=100)
    account_number: str = Field(min_length=4, max_length=50, pattern=r"^[0-9\-]+$")
    account_holder_name: str = Field(min_length=1, max_length=255)
    bank_code: Optional[str] = Field(default=None, max_length=20)


class BankAccountOut(BaseModel):
    instructor_id: str
    bank_name: str
    account_number: str
    account_holder_name: str
    bank_code: Optional[str] = None
    is_verified: bool
    is_active: bool


class InstructorEarnings(BaseModel):
    total_earnings: int = 0
    pending_earnings: int = 0
    paid_earnings: int = 0
    this_month_earnings: int = 0
    transactions_count: int = 0
    available_for_payout: int = 0


class TopInstructor(BaseModel):
    instructor_id: str
    total_earnings: int
    transactions_count: int


class PlatformEarnings(BaseModel):
    total_platform_revenue: int = 0
    total_instructor_payments: int = 0
    monthly_growth: float = 0.0
    top_earning_instructors: list[TopInstructor] = Field(default_factory=list)
