"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.identity.repository import ProfileRepository
from domain.payment.repository import (
    CourseRepository,
    EnrollmentRepository,
    InstructorPaymentSettingsRepository,
    PaymentRepository,
    PlatformSettingsRepository,
    RevenueSplitRepository,
    SettlementOutboxRepository,
)
from domain.payout.repository import BankAccountRepository, PayoutRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界控制抽象"""

    payment_repository: PaymentRepository
    enrollment_repository: EnrollmentRepository
    revenue_split_repository: RevenueSplitRepository
    outbox_repository: SettlementOutboxRepository
    course_repository: CourseRepository
    instructor_settings_repository: InstructorPaymentSettingsRepository
    platform_settings_repository: PlatformSettingsRepository
    payout_repository: PayoutRepository
    bank_account_repository: BankAccountRepository
    profile_repository: ProfileRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self._clear_repositories()

    def _clear_repositories(self) -> None:
        for name in REPOSITORY_ATTRIBUTES:
            setattr(self, name, None)

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        else:
            # 只在非只读且未显式提交时自动提交
            if not self._readonly and not self._committed:
                await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        """提交事务"""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """回滚事务"""
        ...


REPOSITORY_ATTRIBUTES = (
    "payment_repository",
    "enrollment_repository",
    "revenue_split_repository",
    "outbox_repository",
    "course_repository",
    "instructor_settings_repository",
    "platform_settings_repository",
    "payout_repository",
    "bank_account_repository",
    "profile_repository",
)
