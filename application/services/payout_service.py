"""
Instructor payouts: request, admin approval workflow and bank-account gating.

Admin operations are plain read-modify-write updates; two admins acting on the
same request at once resolve as last write wins.
"""
from __future__ import annotations

from datetime import datetime, timezone
import uuid
from typing import Callable, Optional, Sequence

from application.dtos.payouts import AdminPayoutSummary, BankAccountIn
from core.logging_config import get_logger
from domain.common.exceptions import PayoutNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.identity import Capability, Identity
from domain.payment.entity import RevenueSplit, RevenueSplitStatus
from domain.payout.entity import (
    BankAccount,
    PayoutBatch,
    PayoutMethod,
    PayoutStatus,
    generate_batch_reference,
)


logger = get_logger(__name__)

MINIMUM_PAYOUT_AMOUNT = 50_000
# every payout that still owes or already moved money
COMMITTED_STATUSES = (PayoutStatus.PENDING, PayoutStatus.PROCESSING, PayoutStatus.COMPLETED)
EARNED_STATUSES = (RevenueSplitStatus.CALCULATED, RevenueSplitStatus.PAID_OUT)


def _month_start(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def covered_count(splits: Sequence[RevenueSplit], budget: int) -> int:
    """How many of the leading splits fit whole inside ``budget``."""
    count = 0
    running = 0
    for split in splits:
        if running + split.instructor_share > budget:
            break
        running += split.instructor_share
        count += 1
    return count


def available_amount(splits: Sequence[RevenueSplit], committed: int) -> int:
    """Earned share not yet claimed by any non-cancelled payout."""
    earned = sum(s.instructor_share for s in splits if s.status in EARNED_STATUSES)
    return max(earned - committed, 0)


class PayoutService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        minimum_amount: int = MINIMUM_PAYOUT_AMOUNT,
        default_method: PayoutMethod = PayoutMethod.MANUAL_TRANSFER,
    ) -> None:
        self._uow_factory = uow_factory
        self._minimum_amount = minimum_amount
        self._default_method = default_method

    # ------------------------------------------------------------------
    # Instructor side
    # ------------------------------------------------------------------
    async def available_earnings(self, instructor_id: str) -> int:
        async with self._uow_factory(readonly=True) as uow:
            return await self._available(uow, instructor_id)

    async def _ledger(
        self,
        uow: AbstractUnitOfWork,
        instructor_id: str,
        statuses: Sequence[PayoutStatus] = COMMITTED_STATUSES,
    ) -> tuple[list[RevenueSplit], int]:
        """
        Open splits (oldest first) and the payout amount not yet matched to paid_out splits.

        A payout can end inside a split; that remainder stays in the unmatched
        amount and is carried into the next payout instead of being lost.
        """
        splits = await uow.revenue_split_repository.list_by_instructor(
            instructor_id, statuses=EARNED_STATUSES
        )
        open_splits = [s for s in splits if s.status is RevenueSplitStatus.CALCULATED]
        paid_out = sum(s.instructor_share for s in splits if s.status is RevenueSplitStatus.PAID_OUT)
        committed = await uow.payout_repository.sum_amount(instructor_id, statuses)
        return open_splits, committed - paid_out

    async def _available(self, uow: AbstractUnitOfWork, instructor_id: str) -> int:
        open_splits, unmatched = await self._ledger(uow, instructor_id)
        return max(sum(s.instructor_share for s in open_splits) - unmatched, 0)

    async def request_payout(
        self,
        instructor_id: str,
        amount: int,
        payout_method: Optional[PayoutMethod] = None,
    ) -> bool:
        """Create a pending payout request. Never raises: every refusal is False."""
        try:
            async with self._uow_factory() as uow:
                account = await uow.bank_account_repository.get_by_instructor(instructor_id)
                if account is None or not account.is_verified or not account.is_active:
                    logger.info("payout_refused", instructor_id=instructor_id, reason="bank_account_unverified")
                    return False
                if amount < self._minimum_amount:
                    logger.info("payout_refused", instructor_id=instructor_id, reason="below_minimum",
                                amount=amount, minimum=self._minimum_amount)
                    return False
                if await uow.payout_repository.has_pending(instructor_id):
                    logger.info("payout_refused", instructor_id=instructor_id, reason="pending_exists")
                    return False
                open_splits, unmatched = await self._ledger(uow, instructor_id)
                available = max(sum(s.instructor_share for s in open_splits) - unmatched, 0)
                if amount > available:
                    logger.info("payout_refused", instructor_id=instructor_id, reason="exceeds_available",
                                amount=amount, available=available)
                    return False
                # splits this request completes, on top of what earlier payouts already claimed
                transaction_count = (
                    covered_count(open_splits, unmatched + amount) - covered_count(open_splits, unmatched)
                )
                await uow.payout_repository.create(
                    PayoutBatch.request(
                        instructor_id,
                        amount,
                        transaction_count=transaction_count,
                        payout_method=payout_method or self._default_method,
                    )
                )
        except Exception:
            logger.error("payout_request_failed", instructor_id=instructor_id, amount=amount, exc_info=True)
            return False
        return True

    async def list_instructor_payouts(self, instructor_id: str, skip: int = 0, limit: int = 50) -> list[PayoutBatch]:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.payout_repository.list_by_instructor(instructor_id, skip=skip, limit=limit)

    async def get_bank_account(self, instructor_id: str) -> Optional[BankAccount]:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.bank_account_repository.get_by_instructor(instructor_id)

    async def save_bank_account(self, actor: Identity, data: BankAccountIn) -> BankAccount:
        actor.require(Capability.RECEIVE_PAYOUTS)
        async with self._uow_factory() as uow:
            account = await uow.bank_account_repository.get_by_instructor(actor.user_id)
            if account is None:
                now = datetime.now(timezone.utc)
                account = BankAccount(
                    id=str(uuid.uuid4()),
                    instructor_id=actor.user_id,
                    bank_name=data.bank_name,
                    account_number=data.account_number,
                    account_holder_name=data.account_holder_name,
                    bank_code=data.bank_code,
                    created_at=now,
                    updated_at=now,
                )
            else:
                account.replace_details(
                    bank_name=data.bank_name,
                    account_number=data.account_number,
                    account_holder_name=data.account_holder_name,
                    bank_code=data.bank_code,
                )
            account = await uow.bank_account_repository.save(account)
        logger.info("bank_account_saved", instructor_id=actor.user_id, is_verified=account.is_verified)
        return account

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------
    async def verify_bank_account(self, actor: Identity, instructor_id: str) -> BankAccount:
        actor.require(Capability.VERIFY_BANK_ACCOUNTS)
        async with self._uow_factory() as uow:
            account = await uow.bank_account_repository.get_by_instructor(instructor_id)
            if account is None:
                raise PayoutNotFoundException(f"bank_account:{instructor_id}")
            account.verify()
            account = await uow.bank_account_repository.save(account)
        logger.info("bank_account_verified", instructor_id=instructor_id, verified_by=actor.user_id)
        return account

    async def _load(self, uow: AbstractUnitOfWork, payout_id: str) -> PayoutBatch:
        payout = await uow.payout_repository.get_by_id(payout_id)
        if payout is None:
            raise PayoutNotFoundException(payout_id)
        return payout

    async def approve(
        self,
        payout_id: str,
        batch_reference: Optional[str] = None,
        notes: Optional[str] = None,
        *,
        actor: Identity,
    ) -> PayoutBatch:
        actor.require(Capability.MANAGE_PAYOUTS)
        async with self._uow_factory() as uow:
            payout = await self._load(uow, payout_id)
            payout.approve(batch_reference=batch_reference, notes=notes)
            await uow.payout_repository.update(payout)
        logger.info("payout_approved", payout_id=payout_id, batch_reference=payout.batch_reference,
                    approved_by=actor.user_id)
        return payout

    async def complete(
        self,
        payout_id: str,
        transaction_reference: Optional[str] = None,
        *,
        actor: Identity,
    ) -> PayoutBatch:
        actor.require(Capability.MANAGE_PAYOUTS)
        async with self._uow_factory() as uow:
            payout = await self._load(uow, payout_id)
            payout.complete(transaction_reference)
            # read before the update so this payout is counted exactly once
            open_splits, unmatched = await self._ledger(
                uow, payout.instructor_id, statuses=[PayoutStatus.COMPLETED]
            )
            await uow.payout_repository.update(payout)

            # oldest splits fully covered by everything paid so far become paid_out
            covered = open_splits[:covered_count(open_splits, unmatched + payout.total_amount)]
            marked = await uow.revenue_split_repository.mark_paid_out([s.id for s in covered])
        logger.info("payout_completed", payout_id=payout_id, splits_paid_out=marked, completed_by=actor.user_id)
        return payout

    async def cancel(self, payout_id: str, reason: Optional[str] = None, *, actor: Identity) -> PayoutBatch:
        actor.require(Capability.MANAGE_PAYOUTS)
        async with self._uow_factory() as uow:
            payout = await self._load(uow, payout_id)
            payout.cancel(reason)
            await uow.payout_repository.update(payout)
        logger.info("payout_cancelled", payout_id=payout_id, cancelled_by=actor.user_id)
        return payout

    async def batch_approve(
        self,
        instructor_ids: Sequence[str],
        payout_method: PayoutMethod = PayoutMethod.MANUAL_TRANSFER,
        *,
        actor: Identity,
    ) -> tuple[int, Optional[str]]:
        """Move every pending request of the given instructors to processing under one reference."""
        actor.require(Capability.MANAGE_PAYOUTS)
        reference = generate_batch_reference()
        async with self._uow_factory() as uow:
            pending = await uow.payout_repository.list_pending_for_instructors(list(instructor_ids))
            for payout in pending:
                payout.approve(batch_reference=reference, payout_method=payout_method)
                await uow.payout_repository.update(payout)
        logger.info("payout_batch_approved", count=len(pending), batch_reference=reference,
                    payout_method=payout_method.value)
        return len(pending), (reference if pending else None)

    async def list_pending(self, actor: Identity) -> list[PayoutBatch]:
        actor.require(Capability.MANAGE_PAYOUTS)
        async with self._uow_factory(readonly=True) as uow:
            return await uow.payout_repository.list_by_status(PayoutStatus.PENDING)

    async def admin_summary(self, actor: Identity, *, now: Optional[datetime] = None) -> AdminPayoutSummary:
        actor.require(Capability.MANAGE_PAYOUTS)
        month_start = _month_start(now)
        async with self._uow_factory(readonly=True) as uow:
            pending = await uow.payout_repository.list_by_status(PayoutStatus.PENDING, limit=10_000)
            processing = await uow.payout_repository.list_by_status(PayoutStatus.PROCESSING, limit=10_000)
            completed = await uow.payout_repository.list_by_status(PayoutStatus.COMPLETED, limit=10_000)
        completed_this_month = [
            p for p in completed if p.processed_at is not None and p.processed_at >= month_start
        ]
        return AdminPayoutSummary(
            pending_requests=len(pending),
            total_pending_amount=sum(p.total_amount for p in pending),
            processing_batches=len(processing),
            completed_this_month=len(completed_this_month),
            instructors_awaiting_payout=len({p.instructor_id for p in pending}),
        )
