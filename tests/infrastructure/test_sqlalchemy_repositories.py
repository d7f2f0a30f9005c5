"""Repositories and the unit of work against a throwaway SQLite database."""
from decimal import Decimal
from functools import partial

import pytest
import pytest_asyncio

from application.services.platform_config_service import PlatformConfigService
from application.services.settlement_service import SettlementService
from domain.common.exceptions import DuplicateRecordException, PaymentAlreadyExistsException
from domain.payment.entity import CourseEnrollment, Payment, PaymentStatus, RevenueSplitStatus
from domain.payment.fee_policy import FeeConfiguration, SplitBreakdown
from domain.payout.entity import BankAccount, PayoutBatch, PayoutStatus
from infrastructure.database import build_engine, build_session_factory, create_tables
from infrastructure.models import CourseModel, InstructorPaymentSettingsModel, PlatformSettingModel
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from tests.fakes import StubGateway


ORDER_ID = "ord-course-0-student--1700000000000"


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_uow(engine):
    return partial(SQLAlchemyUnitOfWork, build_session_factory(engine))


def _payment(order_id: str = ORDER_ID) -> Payment:
    return Payment.create_pending(
        order_id=order_id,
        user_id="student-1",
        course_id="course-1",
        instructor_id="instructor-1",
        breakdown=SplitBreakdown(
            total_amount=100_000, platform_fee=5_000, instructor_share=95_000,
            platform_fee_percentage=Decimal("5"),
        ),
        split_enabled=True,
    )


@pytest.mark.asyncio
async def test_payment_round_trip_and_duplicate_order(sql_uow):
    async with sql_uow() as uow:
        created = await uow.payment_repository.create(_payment())
    assert created.platform_fee_percentage == Decimal("5")

    with pytest.raises(PaymentAlreadyExistsException):
        async with sql_uow() as uow:
            await uow.payment_repository.create(_payment())

    async with sql_uow(readonly=True) as uow:
        stored = await uow.payment_repository.get_by_order_id(ORDER_ID)
        listed = await uow.payment_repository.list_by_user("student-1")
    assert stored.status is PaymentStatus.PENDING
    assert stored.created_at.tzinfo is not None
    assert [p.order_id for p in listed] == [ORDER_ID]


@pytest.mark.asyncio
async def test_transition_is_conditional_on_pending(sql_uow):
    async with sql_uow() as uow:
        await uow.payment_repository.create(_payment())

    async with sql_uow() as uow:
        assert await uow.payment_repository.transition_status(ORDER_ID, PaymentStatus.PAID, "trx-1", "gopay")
    async with sql_uow() as uow:
        assert not await uow.payment_repository.transition_status(ORDER_ID, PaymentStatus.EXPIRED)

    async with sql_uow(readonly=True) as uow:
        stored = await uow.payment_repository.get_by_order_id(ORDER_ID)
    assert stored.status is PaymentStatus.PAID
    assert stored.gateway_transaction_id == "trx-1"
    assert stored.paid_at is not None


@pytest.mark.asyncio
async def test_enrollment_is_unique_per_user_and_course(sql_uow):
    async with sql_uow() as uow:
        await uow.enrollment_repository.create(CourseEnrollment.grant("student-1", "course-1"))

    with pytest.raises(DuplicateRecordException):
        async with sql_uow() as uow:
            await uow.enrollment_repository.create(CourseEnrollment.grant("student-1", "course-1"))

    async with sql_uow(readonly=True) as uow:
        assert await uow.enrollment_repository.exists("student-1", "course-1")
        assert await uow.enrollment_repository.count_for("student-1", "course-1") == 1


@pytest.mark.asyncio
async def test_settlement_end_to_end(sql_uow, engine):
    async with build_session_factory(engine)() as session:
        session.add_all([
            CourseModel(id="course-1", title="Python", price=100_000, instructor_id="instructor-1"),
            InstructorPaymentSettingsModel(
                instructor_id="instructor-1", midtrans_client_key="SB-Mid-client-i", midtrans_server_key="SB-Mid-server-i",
            ),
            PlatformSettingModel(
                setting_key="midtrans_config",
                setting_value={"client_key": "SB-Mid-client-p", "server_key": "SB-Mid-server-p"},
            ),
        ])
        await session.commit()
    async with sql_uow() as uow:
        await uow.payment_repository.create(_payment())

    gateway = StubGateway()
    gateway.set_status(ORDER_ID, "settlement", transaction_id="trx-1")
    service = SettlementService(sql_uow, gateway, PlatformConfigService(sql_uow, FeeConfiguration()))

    first = await service.reconcile_from_gateway(ORDER_ID)
    second = await service.reconcile_from_gateway(ORDER_ID)

    assert first.applied and first.enrollment_created and first.revenue_split_created
    assert not second.applied and not second.enrollment_created and not second.revenue_split_created
    assert gateway.status_calls[0][1].server_key == "SB-Mid-server-p"
    async with sql_uow(readonly=True) as uow:
        splits = await uow.revenue_split_repository.list_by_instructor("instructor-1")
    assert len(splits) == 1
    assert splits[0].instructor_share == 95_000
    assert splits[0].status is RevenueSplitStatus.CALCULATED

    async with sql_uow() as uow:
        assert await uow.revenue_split_repository.mark_paid_out([splits[0].id]) == 1


@pytest.mark.asyncio
async def test_payout_and_bank_account_repositories(sql_uow):
    payout = PayoutBatch.request("instructor-1", 60_000)
    async with sql_uow() as uow:
        await uow.payout_repository.create(payout)
        await uow.bank_account_repository.save(BankAccount(
            id="acc-1", instructor_id="instructor-1", bank_name="BCA",
            account_number="1234567890", account_holder_name="Budi",
        ))

    async with sql_uow(readonly=True) as uow:
        assert await uow.payout_repository.has_pending("instructor-1")
        assert await uow.payout_repository.sum_amount("instructor-1", [PayoutStatus.PENDING]) == 60_000
        assert await uow.payout_repository.sum_amount("instructor-2", [PayoutStatus.PENDING]) == 0

    async with sql_uow() as uow:
        stored = await uow.payout_repository.get_by_id(payout.id)
        stored.approve(batch_reference="BATCH-1")
        await uow.payout_repository.update(stored)
        account = await uow.bank_account_repository.get_by_instructor("instructor-1")
        account.verify()
        await uow.bank_account_repository.save(account)

    async with sql_uow(readonly=True) as uow:
        processing = await uow.payout_repository.list_by_status(PayoutStatus.PROCESSING)
        account = await uow.bank_account_repository.get_by_instructor("instructor-1")
    assert [p.batch_reference for p in processing] == ["BATCH-1"]
    assert account.is_verified is True


@pytest.mark.asyncio
async def test_rollback_on_error_discards_writes(sql_uow):
    with pytest.raises(RuntimeError):
        async with sql_uow() as uow:
            await uow.payment_repository.create(_payment())
            raise RuntimeError("boom")

    async with sql_uow(readonly=True) as uow:
        assert await uow.payment_repository.get_by_order_id(ORDER_ID) is None
