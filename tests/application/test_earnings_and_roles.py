from datetime import datetime, timezone

import pytest

from application.services.earnings_service import EarningsService, month_bounds, monthly_growth
from application.services.role_service import RoleService
from domain.common.exceptions import (
    DomainValidationException,
    PermissionDeniedException,
    ProfileNotFoundException,
)
from domain.identity import Profile, Role
from domain.payment.entity import RevenueSplitStatus
from domain.payout.entity import PayoutBatch, PayoutStatus
from tests.fakes import seed_split


NOW = datetime(2026, 10, 18, 12, tzinfo=timezone.utc)
OCT = datetime(2026, 10, 5, tzinfo=timezone.utc)
SEP = datetime(2026, 9, 12, tzinfo=timezone.utc)
AUG = datetime(2026, 8, 20, tzinfo=timezone.utc)


def test_month_bounds_wraps_year():
    previous, current = month_bounds(datetime(2026, 1, 15, 8, tzinfo=timezone.utc))
    assert previous == datetime(2025, 12, 1, tzinfo=timezone.utc)
    assert current == datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "current, previous, growth",
    [(5_000, 4_000, 25.0), (2_000, 4_000, -50.0), (1_000, 0, 0.0), (0, 0, 0.0), (1, 3, -66.67)],
)
def test_monthly_growth(current, previous, growth):
    assert monthly_growth(current, previous) == growth


@pytest.fixture
def earnings(uow_factory):
    return EarningsService(uow_factory)


@pytest.fixture
def instructor_splits(store, instructor):
    seed_split(store, instructor_id=instructor.user_id, share=40_000, fee=5_000, created_at=OCT)
    seed_split(store, instructor_id=instructor.user_id, share=30_000, fee=4_000, created_at=SEP,
               status=RevenueSplitStatus.PAID_OUT)
    seed_split(store, instructor_id=instructor.user_id, share=10_000, fee=1_000, created_at=NOW,
               status=RevenueSplitStatus.PENDING)
    paid = PayoutBatch.request(instructor.user_id, 30_000)
    paid.status = PayoutStatus.COMPLETED
    store.payouts[paid.id] = paid
    payout = PayoutBatch.request(instructor.user_id, 20_000)
    store.payouts[payout.id] = payout


@pytest.mark.asyncio
async def test_instructor_summary(earnings, instructor, instructor_splits):
    summary = await earnings.instructor_summary(instructor, now=NOW)

    assert summary.total_earnings == 80_000
    assert summary.pending_earnings == 50_000
    assert summary.paid_earnings == 30_000
    assert summary.this_month_earnings == 50_000
    assert summary.transactions_count == 3
    assert summary.available_for_payout == 20_000


@pytest.mark.asyncio
async def test_admin_reads_any_instructor(earnings, admin, instructor, instructor_splits):
    summary = await earnings.instructor_summary(admin, instructor.user_id, now=NOW)
    assert summary.total_earnings == 80_000


@pytest.mark.asyncio
async def test_instructor_cannot_read_other_instructors(earnings, instructor):
    with pytest.raises(PermissionDeniedException):
        await earnings.instructor_summary(instructor, "instructor-2")


@pytest.mark.asyncio
async def test_students_have_no_earnings_view(earnings, student):
    with pytest.raises(PermissionDeniedException):
        await earnings.instructor_summary(student)


@pytest.mark.asyncio
async def test_platform_summary(earnings, store, admin):
    seed_split(store, instructor_id="instructor-a", share=95_000, fee=5_000, created_at=OCT)
    seed_split(store, instructor_id="instructor-b", share=36_000, fee=4_000, created_at=SEP)
    seed_split(store, instructor_id="instructor-b", share=90_000, fee=10_000, created_at=AUG)

    summary = await earnings.platform_summary(admin, now=NOW)

    assert summary.total_platform_revenue == 19_000
    assert summary.total_instructor_payments == 221_000
    assert summary.monthly_growth == 25.0
    assert [(t.instructor_id, t.total_earnings, t.transactions_count)
            for t in summary.top_earning_instructors] == [
        ("instructor-b", 126_000, 2),
        ("instructor-a", 95_000, 1),
    ]


@pytest.mark.asyncio
async def test_platform_summary_requires_revenue_capability(earnings, instructor):
    with pytest.raises(PermissionDeniedException):
        await earnings.platform_summary(instructor)


@pytest.fixture
def roles(uow_factory, store):
    store.profiles["user-7"] = Profile(id="user-7", email="rina@example.com", full_name="Rina", role=Role.STUDENT)
    return RoleService(uow_factory)


@pytest.mark.asyncio
async def test_super_admin_changes_role(roles, store, super_admin):
    profile = await roles.change_role(super_admin, "user-7", Role.INSTRUCTOR)

    assert profile.role is Role.INSTRUCTOR
    assert store.profiles["user-7"].role is Role.INSTRUCTOR


@pytest.mark.asyncio
async def test_admin_cannot_change_roles(roles, store, admin):
    with pytest.raises(PermissionDeniedException):
        await roles.change_role(admin, "user-7", Role.ADMIN)
    assert store.profiles["user-7"].role is Role.STUDENT


@pytest.mark.asyncio
async def test_change_role_errors(roles, super_admin):
    with pytest.raises(ProfileNotFoundException):
        await roles.change_role(super_admin, "nobody", Role.ADMIN)
    with pytest.raises(DomainValidationException):
        await roles.change_role(super_admin, "user-7", Role.STUDENT)
