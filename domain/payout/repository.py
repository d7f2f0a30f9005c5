"""
提现仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .entity import BankAccount, PayoutBatch, PayoutStatus


class PayoutRepository(ABC):

    @abstractmethod
    async def create(self, payout: PayoutBatch) -> PayoutBatch:
        pass

    @abstractmethod
    async def get_by_id(self, payout_id: str) -> Optional[PayoutBatch]:
        pass

    @abstractmethod
    async def update(self, payout: PayoutBatch) -> PayoutBatch:
        pass

    @abstractmethod
    async def has_pending(self, instructor_id: str) -> bool:
        pass

    @abstractmethod
    async def list_by_instructor(self, instructor_id: str, skip: int = 0, limit: int = 50) -> List[PayoutBatch]:
        """按创建时间倒序"""
        pass

    @abstractmethod
    async def list_by_status(self, status: PayoutStatus, skip: int = 0, limit: int = 100) -> List[PayoutBatch]:
        pass

    @abstractmethod
    async def list_pending_for_instructors(self, instructor_ids: Sequence[str]) -> List[PayoutBatch]:
        pass

    @abstractmethod
    async def sum_amount(self, instructor_id: str, statuses: Sequence[PayoutStatus]) -> int:
        pass


class BankAccountRepository(ABC):

    @abstractmethod
    async def get_by_instructor(self, instructor_id: str) -> Optional[BankAccount]:
        pass

    @abstractmethod
    async def save(self, account: BankAccount) -> BankAccount:
        """按 instructor_id 新增或更新"""
        pass
