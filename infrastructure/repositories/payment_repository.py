"""
支付仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import DuplicateRecordException, PaymentAlreadyExistsException
from domain.payment.entity import (
    CourseEnrollment,
    OutboxStatus,
    OutboxTask,
    Payment,
    PaymentStatus,
    RevenueSplit,
    RevenueSplitStatus,
    SettlementOutboxEntry,
)
from domain.payment.repository import (
    EnrollmentRepository,
    PaymentRepository,
    RevenueSplitRepository,
    SettlementOutboxRepository,
)
from infrastructure.models.payment import (
    CourseEnrollmentModel,
    PaymentModel,
    RevenueSplitModel,
    SettlementOutboxModel,
)


logger = get_logger(__name__)


class SQLAlchemyPaymentRepository(PaymentRepository):
    """支付仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentModel) -> Payment:
        return Payment(
            id=model.id,
            order_id=model.order_id,
            user_id=model.user_id,
            course_id=model.course_id,
            instructor_id=model.instructor_id,
            amount=int(model.amount),
            status=PaymentStatus(model.status),
            gateway_transaction_id=model.gateway_transaction_id,
            payment_method=model.payment_method,
            split_payment_enabled=bool(model.split_payment_enabled),
            platform_fee=int(model.platform_fee),
            instructor_share=int(model.instructor_share),
            platform_fee_percentage=Decimal(str(model.platform_fee_percentage)),
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
        )

    def _to_model(self, entity: Payment) -> PaymentModel:
        return PaymentModel(
            id=entity.id,
            order_id=entity.order_id,
            user_id=entity.user_id,
            course_id=entity.course_id,
            instructor_id=entity.instructor_id,
            amount=entity.amount,
            status=entity.status.value,
            gateway_transaction_id=entity.gateway_transaction_id,
            payment_method=entity.payment_method,
            split_payment_enabled=entity.split_payment_enabled,
            platform_fee=entity.platform_fee,
            instructor_share=entity.instructor_share,
            platform_fee_percentage=entity.platform_fee_percentage,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
        )

    async def create(self, payment: Payment) -> Payment:
        try:
            db_payment = self._to_model(payment)
            self.session.add(db_payment)
            await self.session.flush()
            await self.session.refresh(db_payment)
            logger.info(
                "payment_created",
                payment_id=db_payment.id,
                order_id=db_payment.order_id,
                split_payment_enabled=db_payment.split_payment_enabled,
            )
            return self._to_entity(db_payment)
        except IntegrityError as e:
            msg = str(e).lower()
            if "order_id" in msg or "unique" in msg:
                logger.warning("payment_create_conflict", order_id=payment.order_id)
                raise PaymentAlreadyExistsException(payment.order_id) from e
            raise

    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        result = await self.session.execute(select(PaymentModel).where(PaymentModel.id == payment_id))
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_order_id(self, order_id: str) -> Optional[Payment]:
        result = await self.session.execute(select(PaymentModel).where(PaymentModel.order_id == order_id))
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Payment]:
        query = (
            select(PaymentModel)
            .where(PaymentModel.user_id == user_id)
            .order_by(PaymentModel.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def transition_status(
        self,
        order_id: str,
        new_status: PaymentStatus,
        transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> bool:
        now = datetime.now(timezone.utc)
        values: dict = {"status": new_status.value, "updated_at": now}
        if transaction_id:
            values["gateway_transaction_id"] = transaction_id
        if payment_method:
            values["payment_method"] = payment_method
        if new_status is PaymentStatus.PAID:
            values["paid_at"] = paid_at or now
        stmt = (
            update(PaymentModel)
            .where(
                PaymentModel.order_id == order_id,
                PaymentModel.status == PaymentStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0


class SQLAlchemyEnrollmentRepository(EnrollmentRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists(self, user_id: str, course_id: str) -> bool:
        return await self.count_for(user_id, course_id) > 0

    async def count_for(self, user_id: str, course_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(CourseEnrollmentModel).where(
                CourseEnrollmentModel.user_id == user_id,
                CourseEnrollmentModel.course_id == course_id,
            )
        )
        return int(result.scalar() or 0)

    async def create(self, enrollment: CourseEnrollment) -> CourseEnrollment:
        model = CourseEnrollmentModel(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            payment_id=enrollment.payment_id,
            enrolled_at=enrollment.enrolled_at,
        )
        try:
            self.session.add(model)
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateRecordException("course_enrollment", f"{enrollment.user_id}:{enrollment.course_id}") from e
        return enrollment


class SQLAlchemyRevenueSplitRepository(RevenueSplitRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: RevenueSplitModel) -> RevenueSplit:
        return RevenueSplit(
            id=model.id,
            payment_id=model.payment_id,
            instructor_id=model.instructor_id,
            course_id=model.course_id,
            total_amount=int(model.total_amount),
            platform_fee_percentage=Decimal(str(model.platform_fee_percentage)),
            platform_fee_amount=int(model.platform_fee_amount),
            instructor_share=int(model.instructor_share),
            status=RevenueSplitStatus(model.status),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def get_by_payment_id(self, payment_id: str) -> Optional[RevenueSplit]:
        result = await self.session.execute(
            select(RevenueSplitModel).where(RevenueSplitModel.payment_id == payment_id)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def create(self, split: RevenueSplit) -> RevenueSplit:
        model = RevenueSplitModel(
            id=split.id,
            payment_id=split.payment_id,
            instructor_id=split.instructor_id,
            course_id=split.course_id,
            total_amount=split.total_amount,
            platform_fee_percentage=split.platform_fee_percentage,
            platform_fee_amount=split.platform_fee_amount,
            instructor_share=split.instructor_share,
            status=split.status.value,
            created_at=split.created_at,
            updated_at=split.updated_at,
        )
        try:
            self.session.add(model)
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateRecordException("revenue_split", split.payment_id) from e
        return split

    async def list_by_instructor(
        self,
        instructor_id: str,
        statuses: Optional[Sequence[RevenueSplitStatus]] = None,
        since: Optional[datetime] = None,
    ) -> List[RevenueSplit]:
        query = select(RevenueSplitModel).where(RevenueSplitModel.instructor_id == instructor_id)
        if statuses:
            query = query.where(RevenueSplitModel.status.in_([s.value for s in statuses]))
        if since is not None:
            query = query.where(RevenueSplitModel.created_at >= since)
        query = query.order_by(RevenueSplitModel.created_at.asc())
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_all(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> List[RevenueSplit]:
        query = select(RevenueSplitModel)
        if since is not None:
            query = query.where(RevenueSplitModel.created_at >= since)
        if until is not None:
            query = query.where(RevenueSplitModel.created_at < until)
        result = await self.session.execute(query.order_by(RevenueSplitModel.created_at.asc()))
        return [self._to_entity(m) for m in result.scalars().all()]

    async def mark_paid_out(self, split_ids: Sequence[str]) -> int:
        if not split_ids:
            return 0
        stmt = (
            update(RevenueSplitModel)
            .where(RevenueSplitModel.id.in_(list(split_ids)))
            .values(status=RevenueSplitStatus.PAID_OUT.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)


class SQLAlchemySettlementOutboxRepository(SettlementOutboxRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: SettlementOutboxModel) -> SettlementOutboxEntry:
        return SettlementOutboxEntry(
            id=model.id,
            order_id=model.order_id,
            task=OutboxTask(model.task),
            status=OutboxStatus(model.status),
            attempts=model.attempts,
            last_error=model.last_error,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def add(self, entry: SettlementOutboxEntry) -> SettlementOutboxEntry:
        self.session.add(SettlementOutboxModel(
            id=entry.id,
            order_id=entry.order_id,
            task=entry.task.value,
            status=entry.status.value,
            attempts=entry.attempts,
            last_error=entry.last_error,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        ))
        await self.session.flush()
        return entry

    async def list_pending(self, limit: int = 100) -> List[SettlementOutboxEntry]:
        result = await self.session.execute(
            select(SettlementOutboxModel)
            .where(SettlementOutboxModel.status == OutboxStatus.PENDING.value)
            .order_by(SettlementOutboxModel.created_at.asc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, entry: SettlementOutboxEntry) -> SettlementOutboxEntry:
        await self.session.execute(
            update(SettlementOutboxModel)
            .where(SettlementOutboxModel.id == entry.id)
            .values(
                status=entry.status.value,
                attempts=entry.attempts,
                last_error=entry.last_error,
                updated_at=entry.updated_at or datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return entry
