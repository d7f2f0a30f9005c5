"""
Earnings reports built from revenue split rows.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Optional

from application.dtos.payouts import InstructorEarnings, PlatformEarnings, TopInstructor
from application.services.payout_service import COMMITTED_STATUSES, available_amount
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.identity import Capability, Identity
from domain.payment.entity import RevenueSplitStatus


logger = get_logger(__name__)

TOP_INSTRUCTORS_LIMIT = 10


def month_bounds(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """(start of previous month, start of current month), both UTC."""
    now = now or datetime.now(timezone.utc)
    current = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if current.month == 1:
        previous = current.replace(year=current.year - 1, month=12)
    else:
        previous = current.replace(month=current.month - 1)
    return previous, current


def monthly_growth(current: int, previous: int) -> float:
    if previous == 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


class EarningsService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def instructor_summary(
        self,
        identity: Identity,
        instructor_id: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> InstructorEarnings:
        # instructors read their own numbers, admins anyone's
        target = instructor_id or identity.user_id
        if target == identity.user_id:
            identity.require(Capability.RECEIVE_PAYOUTS)
        else:
            identity.require(Capability.VIEW_PLATFORM_REVENUE)

        _, month_start = month_bounds(now)
        async with self._uow_factory(readonly=True) as uow:
            splits = await uow.revenue_split_repository.list_by_instructor(target)
            committed = await uow.payout_repository.sum_amount(target, COMMITTED_STATUSES)

        summary = InstructorEarnings(transactions_count=len(splits))
        for split in splits:
            summary.total_earnings += split.instructor_share
            if split.status in (RevenueSplitStatus.CALCULATED, RevenueSplitStatus.PENDING):
                summary.pending_earnings += split.instructor_share
            elif split.status is RevenueSplitStatus.PAID_OUT:
                summary.paid_earnings += split.instructor_share
            if split.created_at is not None and split.created_at >= month_start:
                summary.this_month_earnings += split.instructor_share
        summary.available_for_payout = available_amount(splits, committed)
        return summary

    async def platform_summary(self, identity: Identity, *, now: Optional[datetime] = None) -> PlatformEarnings:
        identity.require(Capability.VIEW_PLATFORM_REVENUE)
        previous_start, current_start = month_bounds(now)
        async with self._uow_factory(readonly=True) as uow:
            splits = await uow.revenue_split_repository.list_all()

        summary = PlatformEarnings()
        current_month = previous_month = 0
        per_instructor: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        for split in splits:
            summary.total_platform_revenue += split.platform_fee_amount
            summary.total_instructor_payments += split.instructor_share
            created = split.created_at
            if created is not None:
                if created >= current_start:
                    current_month += split.platform_fee_amount
                elif created >= previous_start:
                    previous_month += split.platform_fee_amount
            bucket = per_instructor[split.instructor_id]
            bucket[0] += split.instructor_share
            bucket[1] += 1

        summary.monthly_growth = monthly_growth(current_month, previous_month)
        ranked = sorted(per_instructor.items(), key=lambda item: item[1][0], reverse=True)
        summary.top_earning_instructors = [
            TopInstructor(instructor_id=iid, total_earnings=total, transactions_count=count)
            for iid, (total, count) in ranked[:TOP_INSTRUCTORS_LIMIT]
        ]
        logger.debug("platform_summary_built", splits=len(splits), growth=summary.monthly_growth)
        return summary
