"""
讲师提现领域实体

提现申请只能在讲师拥有已验证的银行账户时创建；
之后由管理员推进 pending -> processing -> completed，或在完成前取消。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
import time
import uuid

from domain.common.exceptions import DomainValidationException, PayoutTransitionException


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PayoutStatus.COMPLETED, PayoutStatus.FAILED, PayoutStatus.CANCELLED)


class PayoutMethod(str, Enum):
    MANUAL_TRANSFER = "manual_transfer"
    BANK_API = "bank_api"
    DIGITAL_WALLET = "digital_wallet"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def generate_batch_reference(now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"BATCH-{now_ms}"


@dataclass
class BankAccount:
    """讲师收款银行账户（每个讲师一条）"""

    id: Optional[str]
    instructor_id: str
    bank_name: str
    account_number: str
    account_holder_name: str
    bank_code: Optional[str] = None
    is_verified: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        for name in ("bank_name", "account_number", "account_holder_name"):
            if not (getattr(self, name) or "").strip():
                raise DomainValidationException(f"{name} is required", field=name)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @property
    def masked_account_number(self) -> str:
        tail = self.account_number[-4:]
        return "*" * max(len(self.account_number) - 4, 0) + tail

    def replace_details(
        self,
        *,
        bank_name: str,
        account_number: str,
        account_holder_name: str,
        bank_code: Optional[str] = None,
    ) -> None:
        """修改账户信息后需要重新验证"""
        self.bank_name = bank_name
        self.account_number = account_number
        self.account_holder_name = account_holder_name
        self.bank_code = bank_code
        self.is_verified = False
        self.updated_at = datetime.now(timezone.utc)

    def verify(self) -> None:
        self.is_verified = True
        self.updated_at = datetime.now(timezone.utc)


@dataclass
class PayoutBatch:
    """提现申请 / 批次"""

    id: Optional[str]
    instructor_id: str
    total_amount: int
    transaction_count: int = 0
    payout_method: PayoutMethod = PayoutMethod.MANUAL_TRANSFER
    status: PayoutStatus = PayoutStatus.PENDING
    scheduled_date: Optional[date] = None
    processed_at: Optional[datetime] = None
    batch_reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.total_amount <= 0:
            raise DomainValidationException(
                f"Payout amount must be positive: {self.total_amount}",
                field="total_amount",
            )
        self.processed_at = _ensure_utc(self.processed_at)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @classmethod
    def request(
        cls,
        instructor_id: str,
        amount: int,
        *,
        transaction_count: int = 0,
        payout_method: PayoutMethod = PayoutMethod.MANUAL_TRANSFER,
    ) -> "PayoutBatch":
        now = datetime.now(timezone.utc)
        return cls(
            id=str(uuid.uuid4()),
            instructor_id=instructor_id,
            total_amount=amount,
            transaction_count=transaction_count,
            payout_method=payout_method,
            status=PayoutStatus.PENDING,
            scheduled_date=now.date(),
            created_at=now,
            updated_at=now,
        )

    def _guard(self, allowed: tuple[PayoutStatus, ...], target: PayoutStatus) -> None:
        if self.status not in allowed:
            raise PayoutTransitionException(self.id, self.status.value, target.value)

    def approve(
        self,
        batch_reference: Optional[str] = None,
        notes: Optional[str] = None,
        payout_method: Optional[PayoutMethod] = None,
    ) -> None:
        self._guard((PayoutStatus.PENDING,), PayoutStatus.PROCESSING)
        now = datetime.now(timezone.utc)
        self.status = PayoutStatus.PROCESSING
        self.processed_at = now
        self.batch_reference = batch_reference or generate_batch_reference()
        if notes is not None:
            self.notes = notes
        if payout_method is not None:
            self.payout_method = payout_method
        self.updated_at = now

    def complete(self, transaction_reference: Optional[str] = None) -> None:
        self._guard((PayoutStatus.PROCESSING,), PayoutStatus.COMPLETED)
        self.status = PayoutStatus.COMPLETED
        if transaction_reference:
            self.notes = f"Transaction reference: {transaction_reference}"
        self.updated_at = datetime.now(timezone.utc)

    def fail(self, reason: Optional[str] = None) -> None:
        self._guard((PayoutStatus.PROCESSING,), PayoutStatus.FAILED)
        self.status = PayoutStatus.FAILED
        if reason:
            self.notes = reason
        self.updated_at = datetime.now(timezone.utc)

    def cancel(self, reason: Optional[str] = None) -> None:
        if self.status.is_terminal:
            raise PayoutTransitionException(self.id, self.status.value, PayoutStatus.CANCELLED.value)
        self.status = PayoutStatus.CANCELLED
        self.notes = reason or "Cancelled by admin"
        self.updated_at = datetime.now(timezone.utc)
