"""In-memory doubles for repositories, the unit of work and the gateway.

Repositories write straight into a shared InMemoryStore and hand out copies,
so services see the same isolation they get from the database session.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from application.dtos.payments import (
    CheckoutResult,
    CheckoutScript,
    ConnectionTestResult,
    GatewayTransactionStatus,
    SnapToken,
    TransactionDescriptor,
)
from domain.common.exceptions import DuplicateRecordException, PaymentAlreadyExistsException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.identity import Profile
from domain.identity.repository import ProfileRepository
from domain.payment.entity import (
    Course,
    CourseEnrollment,
    InstructorPaymentSettings,
    OutboxStatus,
    Payment,
    PaymentStatus,
    RevenueSplit,
    RevenueSplitStatus,
    SettlementOutboxEntry,
)
from domain.payment.fee_policy import MerchantCredentials
from domain.payment.repository import (
    CourseRepository,
    EnrollmentRepository,
    InstructorPaymentSettingsRepository,
    PaymentRepository,
    PlatformSettingsRepository,
    RevenueSplitRepository,
    SettlementOutboxRepository,
)
from domain.payout.entity import BankAccount, PayoutBatch, PayoutStatus
from domain.payout.repository import BankAccountRepository, PayoutRepository
from infrastructure.external.payments.exceptions import CheckoutDismissedError, GatewaySignatureError


@dataclass
class InMemoryStore:
    payments: dict[str, Payment] = field(default_factory=dict)
    enrollments: dict[tuple[str, str], CourseEnrollment] = field(default_factory=dict)
    splits: dict[str, RevenueSplit] = field(default_factory=dict)
    outbox: dict[str, SettlementOutboxEntry] = field(default_factory=dict)
    courses: dict[str, Course] = field(default_factory=dict)
    instructor_settings: dict[str, InstructorPaymentSettings] = field(default_factory=dict)
    platform_settings: dict[str, dict] = field(default_factory=dict)
    payouts: dict[str, PayoutBatch] = field(default_factory=dict)
    bank_accounts: dict[str, BankAccount] = field(default_factory=dict)
    profiles: dict[str, Profile] = field(default_factory=dict)
    # "enrollment.create" -> number of calls left that raise
    failures: dict[str, int] = field(default_factory=dict)
    commits: int = 0
    rollbacks: int = 0

    def fail(self, operation: str, times: int = 1) -> None:
        self.failures[operation] = times

    def check(self, operation: str) -> None:
        left = self.failures.get(operation, 0)
        if left > 0:
            self.failures[operation] = left - 1
            raise RuntimeError(f"simulated failure: {operation}")


def _copy(obj):
    return copy.deepcopy(obj)


class InMemoryPaymentRepository(PaymentRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, payment: Payment) -> Payment:
        self.store.check("payment.create")
        if payment.order_id in self.store.payments:
            raise PaymentAlreadyExistsException(payment.order_id)
        self.store.payments[payment.order_id] = _copy(payment)
        return _copy(payment)

    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        for payment in self.store.payments.values():
            if payment.id == payment_id:
                return _copy(payment)
        return None

    async def get_by_order_id(self, order_id: str) -> Optional[Payment]:
        payment = self.store.payments.get(order_id)
        return _copy(payment) if payment else None

    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> list[Payment]:
        rows = [p for p in self.store.payments.values() if p.user_id == user_id]
        rows.sort(key=lambda p: p.created_at, reverse=True)
        return [_copy(p) for p in rows[skip:skip + limit]]

    async def transition_status(
        self,
        order_id: str,
        new_status: PaymentStatus,
        transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> bool:
        self.store.check("payment.transition")
        payment = self.store.payments.get(order_id)
        if payment is None:
            return False
        return payment.apply_status(
            new_status,
            transaction_id=transaction_id,
            payment_method=payment_method,
            now=paid_at,
        )


class InMemoryEnrollmentRepository(EnrollmentRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def exists(self, user_id: str, course_id: str) -> bool:
        return (user_id, course_id) in self.store.enrollments

    async def create(self, enrollment: CourseEnrollment) -> CourseEnrollment:
        self.store.check("enrollment.create")
        key = (enrollment.user_id, enrollment.course_id)
        if key in self.store.enrollments:
            raise DuplicateRecordException("enrollment", f"{key[0]}:{key[1]}")
        self.store.enrollments[key] = _copy(enrollment)
        return _copy(enrollment)

    async def count_for(self, user_id: str, course_id: str) -> int:
        return int((user_id, course_id) in self.store.enrollments)


class InMemoryRevenueSplitRepository(RevenueSplitRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_by_payment_id(self, payment_id: str) -> Optional[RevenueSplit]:
        split = self.store.splits.get(payment_id)
        return _copy(split) if split else None

    async def create(self, split: RevenueSplit) -> RevenueSplit:
        self.store.check("split.create")
        if split.payment_id in self.store.splits:
            raise DuplicateRecordException("revenue_split", split.payment_id)
        self.store.splits[split.payment_id] = _copy(split)
        return _copy(split)

    async def list_by_instructor(
        self,
        instructor_id: str,
        statuses: Optional[Sequence[RevenueSplitStatus]] = None,
        since: Optional[datetime] = None,
    ) -> list[RevenueSplit]:
        rows = [
            s for s in self.store.splits.values()
            if s.instructor_id == instructor_id
            and (statuses is None or s.status in statuses)
            and (since is None or s.created_at >= since)
        ]
        rows.sort(key=lambda s: s.created_at)
        return [_copy(s) for s in rows]

    async def list_all(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> list[RevenueSplit]:
        rows = [
            s for s in self.store.splits.values()
            if (since is None or s.created_at >= since) and (until is None or s.created_at < until)
        ]
        return [_copy(s) for s in rows]

    async def mark_paid_out(self, split_ids: Sequence[str]) -> int:
        count = 0
        for split in self.store.splits.values():
            if split.id in split_ids and split.status is not RevenueSplitStatus.PAID_OUT:
                split.mark_paid_out()
                count += 1
        return count


class InMemoryOutboxRepository(SettlementOutboxRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def add(self, entry: SettlementOutboxEntry) -> SettlementOutboxEntry:
        self.store.check("outbox.add")
        self.store.outbox[entry.id] = _copy(entry)
        return _copy(entry)

    async def list_pending(self, limit: int = 100) -> list[SettlementOutboxEntry]:
        rows = [e for e in self.store.outbox.values() if e.status is OutboxStatus.PENDING]
        return [_copy(e) for e in rows[:limit]]

    async def update(self, entry: SettlementOutboxEntry) -> SettlementOutboxEntry:
        self.store.outbox[entry.id] = _copy(entry)
        return _copy(entry)


class InMemoryCourseRepository(CourseRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_by_id(self, course_id: str) -> Optional[Course]:
        course = self.store.courses.get(course_id)
        return _copy(course) if course else None


class InMemoryInstructorSettingsRepository(InstructorPaymentSettingsRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_by_instructor(self, instructor_id: str) -> Optional[InstructorPaymentSettings]:
        row = self.store.instructor_settings.get(instructor_id)
        return _copy(row) if row else None


class InMemoryPlatformSettingsRepository(PlatformSettingsRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get(self, key: str) -> Optional[dict]:
        row = self.store.platform_settings.get(key)
        return _copy(row) if row else None


class InMemoryPayoutRepository(PayoutRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, payout: PayoutBatch) -> PayoutBatch:
        self.store.check("payout.create")
        self.store.payouts[payout.id] = _copy(payout)
        return _copy(payout)

    async def get_by_id(self, payout_id: str) -> Optional[PayoutBatch]:
        payout = self.store.payouts.get(payout_id)
        return _copy(payout) if payout else None

    async def update(self, payout: PayoutBatch) -> PayoutBatch:
        self.store.payouts[payout.id] = _copy(payout)
        return _copy(payout)

    async def has_pending(self, instructor_id: str) -> bool:
        return any(
            p.instructor_id == instructor_id and p.status is PayoutStatus.PENDING
            for p in self.store.payouts.values()
        )

    async def list_by_instructor(self, instructor_id: str, skip: int = 0, limit: int = 50) -> list[PayoutBatch]:
        rows = [p for p in self.store.payouts.values() if p.instructor_id == instructor_id]
        rows.sort(key=lambda p: p.created_at, reverse=True)
        return [_copy(p) for p in rows[skip:skip + limit]]

    async def list_by_status(self, status: PayoutStatus, skip: int = 0, limit: int = 100) -> list[PayoutBatch]:
        rows = [p for p in self.store.payouts.values() if p.status is status]
        rows.sort(key=lambda p: p.created_at)
        return [_copy(p) for p in rows[skip:skip + limit]]

    async def list_pending_for_instructors(self, instructor_ids: Sequence[str]) -> list[PayoutBatch]:
        return [
            _copy(p) for p in self.store.payouts.values()
            if p.instructor_id in instructor_ids and p.status is PayoutStatus.PENDING
        ]

    async def sum_amount(self, instructor_id: str, statuses: Sequence[PayoutStatus]) -> int:
        return sum(
            p.total_amount for p in self.store.payouts.values()
            if p.instructor_id == instructor_id and p.status in statuses
        )


class InMemoryBankAccountRepository(BankAccountRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_by_instructor(self, instructor_id: str) -> Optional[BankAccount]:
        account = self.store.bank_accounts.get(instructor_id)
        return _copy(account) if account else None

    async def save(self, account: BankAccount) -> BankAccount:
        self.store.bank_accounts[account.instructor_id] = _copy(account)
        return _copy(account)


class InMemoryProfileRepository(ProfileRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_by_id(self, user_id: str) -> Optional[Profile]:
        profile = self.store.profiles.get(user_id)
        return _copy(profile) if profile else None

    async def update_role(self, profile: Profile) -> Profile:
        stored = self.store.profiles[profile.id]
        stored.role = profile.role
        stored.updated_at = profile.updated_at
        return _copy(stored)


class FakeUnitOfWork(AbstractUnitOfWork):
    def __init__(self, store: InMemoryStore, *, readonly: bool = False):
        super().__init__(readonly=readonly)
        self.store = store
        self.payment_repository = InMemoryPaymentRepository(store)
        self.enrollment_repository = InMemoryEnrollmentRepository(store)
        self.revenue_split_repository = InMemoryRevenueSplitRepository(store)
        self.outbox_repository = InMemoryOutboxRepository(store)
        self.course_repository = InMemoryCourseRepository(store)
        self.instructor_settings_repository = InMemoryInstructorSettingsRepository(store)
        self.platform_settings_repository = InMemoryPlatformSettingsRepository(store)
        self.payout_repository = InMemoryPayoutRepository(store)
        self.bank_account_repository = InMemoryBankAccountRepository(store)
        self.profile_repository = InMemoryProfileRepository(store)

    async def commit(self) -> None:
        self._committed = True
        self.store.commits += 1

    async def rollback(self) -> None:
        self.store.rollbacks += 1


def make_uow_factory(store: InMemoryStore):
    def factory(*, readonly: bool = False) -> FakeUnitOfWork:
        return FakeUnitOfWork(store, readonly=readonly)
    return factory


class StubGateway:
    """Records every call; status answers come from ``statuses``."""

    provider = "stub"

    def __init__(self) -> None:
        self.statuses: dict[str, GatewayTransactionStatus] = {}
        self.token_calls: list[tuple[TransactionDescriptor, MerchantCredentials]] = []
        self.script_calls: list[MerchantCredentials] = []
        self.status_calls: list[tuple[str, MerchantCredentials]] = []
        self.verified: list[tuple[GatewayTransactionStatus, MerchantCredentials]] = []
        self.reject_signatures = False
        self.token_error: Optional[Exception] = None
        self.connection_result = ConnectionTestResult(status="success", message="ok")
        self.closed = False

    def set_status(self, order_id: str, transaction_status: Optional[str], **fields: Any) -> None:
        self.statuses[order_id] = GatewayTransactionStatus(
            order_id=order_id,
            transaction_status=transaction_status,
            **fields,
        )

    async def create_token(self, descriptor: TransactionDescriptor, credentials: MerchantCredentials) -> SnapToken:
        self.token_calls.append((descriptor, credentials))
        if self.token_error is not None:
            raise self.token_error
        return SnapToken(token=f"tok-{descriptor.order_id}", redirect_url=f"https://pay.test/{descriptor.order_id}")

    def checkout_script(self, credentials: MerchantCredentials) -> CheckoutScript:
        self.script_calls.append(credentials)
        return CheckoutScript(
            src="https://app.sandbox.midtrans.com/snap/snap.js",
            client_key=credentials.client_key,
            is_production=credentials.is_production,
        )

    def parse_checkout_result(self, event: str, payload: dict[str, Any]) -> CheckoutResult:
        if event == "close":
            raise CheckoutDismissedError(payload.get("order_id"))
        return CheckoutResult(outcome=event, transaction_status=payload.get("transaction_status"))

    async def query_status(self, order_id: str, credentials: MerchantCredentials) -> GatewayTransactionStatus:
        self.status_calls.append((order_id, credentials))
        return self.statuses.get(order_id) or GatewayTransactionStatus(order_id=order_id, status_code="404")

    async def test_connection(self, server_key: str, is_production: bool) -> ConnectionTestResult:
        return self.connection_result

    def parse_notification(self, body: bytes) -> GatewayTransactionStatus:
        return GatewayTransactionStatus.model_validate_json(body)

    def verify_notification(self, notification: GatewayTransactionStatus, credentials: MerchantCredentials) -> None:
        self.verified.append((notification, credentials))
        if self.reject_signatures:
            raise GatewaySignatureError("Notification signature mismatch", provider=self.provider)

    async def aclose(self) -> None:
        self.closed = True


PLATFORM_CREDENTIALS = MerchantCredentials(client_key="SB-Mid-client-platform", server_key="SB-Mid-server-platform")
INSTRUCTOR_CREDENTIALS = MerchantCredentials(client_key="SB-Mid-client-inst", server_key="SB-Mid-server-inst")


def seed_course(
    store: InMemoryStore,
    *,
    course_id: str = "course-0001-abcdef",
    price: int = 100_000,
    instructor_id: str = "instructor-1",
    with_credentials: bool = True,
) -> Course:
    course = Course(id=course_id, title="Python for Data Engineering", price=price, instructor_id=instructor_id)
    store.courses[course.id] = course
    if with_credentials:
        store.instructor_settings[instructor_id] = InstructorPaymentSettings(
            instructor_id=instructor_id,
            client_key=INSTRUCTOR_CREDENTIALS.client_key,
            server_key=INSTRUCTOR_CREDENTIALS.server_key,
        )
    return course


def seed_platform_split(store: InMemoryStore, *, fee_percentage: int = 5, minimum: int = 50_000) -> None:
    store.platform_settings["midtrans_config"] = {
        "client_key": PLATFORM_CREDENTIALS.client_key,
        "server_key": PLATFORM_CREDENTIALS.server_key,
        "is_production": False,
        "is_active": True,
    }
    store.platform_settings["revenue_split_config"] = {
        "enable_split": True,
        "platform_fee_percentage": fee_percentage,
        "platform_fee_fixed": 0,
        "minimum_split_amount": minimum,
    }


def seed_split(
    store: InMemoryStore,
    *,
    instructor_id: str,
    share: int,
    fee: int = 0,
    status: RevenueSplitStatus = RevenueSplitStatus.CALCULATED,
    created_at: Optional[datetime] = None,
    payment_id: Optional[str] = None,
) -> RevenueSplit:
    created_at = created_at or datetime.now(timezone.utc)
    payment_id = payment_id or f"pay-{len(store.splits) + 1}"
    split = RevenueSplit(
        id=f"split-{len(store.splits) + 1}",
        payment_id=payment_id,
        instructor_id=instructor_id,
        course_id="course-x",
        total_amount=share + fee,
        platform_fee_percentage=0,
        platform_fee_amount=fee,
        instructor_share=share,
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )
    store.splits[payment_id] = split
    return split
