"""
提现仓储实现
"""
from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.payout.entity import BankAccount, PayoutBatch, PayoutMethod, PayoutStatus
from domain.payout.repository import BankAccountRepository, PayoutRepository
from infrastructure.models.payout import InstructorBankAccountModel, PayoutBatchModel


logger = get_logger(__name__)


class SQLAlchemyPayoutRepository(PayoutRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PayoutBatchModel) -> PayoutBatch:
        return PayoutBatch(
            id=model.id,
            instructor_id=model.instructor_id,
            total_amount=int(model.total_amount),
            transaction_count=model.transaction_count or 0,
            payout_method=PayoutMethod(model.payout_method),
            status=PayoutStatus(model.status),
            scheduled_date=model.scheduled_date,
            processed_at=model.processed_at,
            batch_reference=model.batch_reference,
            notes=model.notes,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _apply(self, model: PayoutBatchModel, entity: PayoutBatch) -> None:
        model.instructor_id = entity.instructor_id
        model.total_amount = entity.total_amount
        model.transaction_count = entity.transaction_count
        model.payout_method = entity.payout_method.value
        model.status = entity.status.value
        model.scheduled_date = entity.scheduled_date
        model.processed_at = entity.processed_at
        model.batch_reference = entity.batch_reference
        model.notes = entity.notes
        if entity.created_at is not None:
            model.created_at = entity.created_at
        if entity.updated_at is not None:
            model.updated_at = entity.updated_at

    async def create(self, payout: PayoutBatch) -> PayoutBatch:
        model = PayoutBatchModel(id=payout.id)
        self._apply(model, payout)
        self.session.add(model)
        await self.session.flush()
        logger.info("payout_requested", payout_id=payout.id, instructor_id=payout.instructor_id,
                    amount=payout.total_amount)
        return payout

    async def get_by_id(self, payout_id: str) -> Optional[PayoutBatch]:
        model = await self.session.get(PayoutBatchModel, payout_id)
        return self._to_entity(model) if model else None

    async def update(self, payout: PayoutBatch) -> PayoutBatch:
        model = await self.session.get(PayoutBatchModel, payout.id)
        if model is None:
            return payout
        self._apply(model, payout)
        await self.session.flush()
        return payout

    async def has_pending(self, instructor_id: str) -> bool:
        result = await self.session.execute(
            select(func.count()).select_from(PayoutBatchModel).where(
                PayoutBatchModel.instructor_id == instructor_id,
                PayoutBatchModel.status == PayoutStatus.PENDING.value,
            )
        )
        return int(result.scalar() or 0) > 0

    async def list_by_instructor(self, instructor_id: str, skip: int = 0, limit: int = 50) -> List[PayoutBatch]:
        result = await self.session.execute(
            select(PayoutBatchModel)
            .where(PayoutBatchModel.instructor_id == instructor_id)
            .order_by(PayoutBatchModel.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_by_status(self, status: PayoutStatus, skip: int = 0, limit: int = 100) -> List[PayoutBatch]:
        result = await self.session.execute(
            select(PayoutBatchModel)
            .where(PayoutBatchModel.status == status.value)
            .order_by(PayoutBatchModel.created_at.asc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_pending_for_instructors(self, instructor_ids: Sequence[str]) -> List[PayoutBatch]:
        if not instructor_ids:
            return []
        result = await self.session.execute(
            select(PayoutBatchModel).where(
                PayoutBatchModel.instructor_id.in_(list(instructor_ids)),
                PayoutBatchModel.status == PayoutStatus.PENDING.value,
            )
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def sum_amount(self, instructor_id: str, statuses: Sequence[PayoutStatus]) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(PayoutBatchModel.total_amount), 0)).where(
                PayoutBatchModel.instructor_id == instructor_id,
                PayoutBatchModel.status.in_([s.value for s in statuses]),
            )
        )
        return int(result.scalar() or 0)


class SQLAlchemyBankAccountRepository(BankAccountRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_instructor(self, instructor_id: str) -> Optional[BankAccount]:
        result = await self.session.execute(
            select(InstructorBankAccountModel).where(InstructorBankAccountModel.instructor_id == instructor_id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return BankAccount(
            id=model.id,
            instructor_id=model.instructor_id,
            bank_name=model.bank_name,
            account_number=model.account_number,
            account_holder_name=model.account_holder_name,
            bank_code=model.bank_code,
            is_verified=bool(model.is_verified),
            is_active=bool(model.is_active),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def save(self, account: BankAccount) -> BankAccount:
        result = await self.session.execute(
            select(InstructorBankAccountModel).where(
                InstructorBankAccountModel.instructor_id == account.instructor_id
            )
        )
        model = result.scalar_one_or_none()
        if model is None:
            model = InstructorBankAccountModel(id=account.id, instructor_id=account.instructor_id)
            self.session.add(model)
        model.bank_name = account.bank_name
        model.account_number = account.account_number
        model.account_holder_name = account.account_holder_name
        model.bank_code = account.bank_code
        model.is_verified = account.is_verified
        model.is_active = account.is_active
        if account.updated_at is not None:
            model.updated_at = account.updated_at
        await self.session.flush()
        account.id = model.id
        return account
