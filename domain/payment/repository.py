"""
支付仓储接口 - 定义支付及派生记录的数据访问抽象
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from .entity import (
    Course,
    CourseEnrollment,
    InstructorPaymentSettings,
    Payment,
    PaymentStatus,
    RevenueSplit,
    RevenueSplitStatus,
    SettlementOutboxEntry,
)


class PaymentRepository(ABC):
    """支付仓储抽象接口"""

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """创建支付记录，订单号重复时抛出 PaymentAlreadyExistsException"""
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def get_by_order_id(self, order_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Payment]:
        pass

    @abstractmethod
    async def transition_status(
        self,
        order_id: str,
        new_status: PaymentStatus,
        transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> bool:
        """仅当当前状态为 pending 时更新，返回是否有行被修改"""
        pass


class EnrollmentRepository(ABC):

    @abstractmethod
    async def exists(self, user_id: str, course_id: str) -> bool:
        pass

    @abstractmethod
    async def create(self, enrollment: CourseEnrollment) -> CourseEnrollment:
        """(user_id, course_id) 唯一"""
        pass

    @abstractmethod
    async def count_for(self, user_id: str, course_id: str) -> int:
        pass


class RevenueSplitRepository(ABC):

    @abstractmethod
    async def get_by_payment_id(self, payment_id: str) -> Optional[RevenueSplit]:
        pass

    @abstractmethod
    async def create(self, split: RevenueSplit) -> RevenueSplit:
        """payment_id 唯一"""
        pass

    @abstractmethod
    async def list_by_instructor(
        self,
        instructor_id: str,
        statuses: Optional[Sequence[RevenueSplitStatus]] = None,
        since: Optional[datetime] = None,
    ) -> List[RevenueSplit]:
        """按创建时间升序返回"""
        pass

    @abstractmethod
    async def list_all(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> List[RevenueSplit]:
        pass

    @abstractmethod
    async def mark_paid_out(self, split_ids: Sequence[str]) -> int:
        pass


class SettlementOutboxRepository(ABC):

    @abstractmethod
    async def add(self, entry: SettlementOutboxEntry) -> SettlementOutboxEntry:
        pass

    @abstractmethod
    async def list_pending(self, limit: int = 100) -> List[SettlementOutboxEntry]:
        pass

    @abstractmethod
    async def update(self, entry: SettlementOutboxEntry) -> SettlementOutboxEntry:
        pass


class CourseRepository(ABC):

    @abstractmethod
    async def get_by_id(self, course_id: str) -> Optional[Course]:
        pass


class InstructorPaymentSettingsRepository(ABC):

    @abstractmethod
    async def get_by_instructor(self, instructor_id: str) -> Optional[InstructorPaymentSettings]:
        pass


class PlatformSettingsRepository(ABC):
    """platform_settings 表：key -> JSON 值"""

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        pass
