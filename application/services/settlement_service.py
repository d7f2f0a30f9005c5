"""
Settlement reconciliation: gateway status -> payment record -> bookkeeping.

Phase 1 is the conditional ``pending -> terminal`` transition on the payment
row and must succeed. Phase 2 (enrollment and revenue split) runs in its own
transactions, is idempotent, and runs again on every ``paid`` delivery. A
phase 2 failure never fails the settlement: it is logged and queued in the
settlement outbox for ``retry_outbox``.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.payments import GatewayTransactionStatus, SettlementResult
from application.ports.payment_gateway import PaymentGateway
from application.services.platform_config_service import PlatformConfigService
from core.logging_config import get_logger
from domain.common.exceptions import DuplicateRecordException, PaymentNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import (
    CourseEnrollment,
    OutboxTask,
    Payment,
    PaymentStatus,
    RevenueSplit,
    SettlementOutboxEntry,
)
from domain.payment.events import BookkeepingDeferred, PaymentClosed, PaymentPaid
from shared.codes.payment_codes import map_gateway_status


logger = get_logger(__name__)


async def ensure_enrollment(
    uow_factory: Callable[..., AbstractUnitOfWork],
    user_id: str,
    course_id: str,
    payment_id: Optional[str] = None,
) -> bool:
    """Create the (user, course) enrollment unless it exists. Returns True when created."""
    try:
        async with uow_factory() as uow:
            if await uow.enrollment_repository.exists(user_id, course_id):
                return False
            await uow.enrollment_repository.create(CourseEnrollment.grant(user_id, course_id, payment_id))
    except DuplicateRecordException:
        # concurrent delivery inserted it first
        return False
    logger.info("enrollment_created", user_id=user_id, course_id=course_id, payment_id=payment_id)
    return True


class SettlementService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: Optional[PaymentGateway] = None,
        config: Optional[PlatformConfigService] = None,
        *,
        verify_signature: bool = True,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._config = config
        self._verify_signature = verify_signature

    # ------------------------------------------------------------------
    # Payment record store
    # ------------------------------------------------------------------
    async def get_payment(self, order_id: str) -> Payment:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_order_id(order_id)
        if payment is None:
            raise PaymentNotFoundException(order_id)
        return payment

    async def update_status(
        self,
        order_id: str,
        new_status: PaymentStatus,
        transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> tuple[Payment, bool]:
        """Conditional transition; returns the payment and whether the row changed."""
        async with self._uow_factory() as uow:
            payment = await uow.payment_repository.get_by_order_id(order_id)
            if payment is None:
                raise PaymentNotFoundException(order_id)
            applied = await uow.payment_repository.transition_status(
                order_id,
                new_status,
                transaction_id=transaction_id,
                payment_method=payment_method,
            )
            if applied:
                payment.apply_status(new_status, transaction_id=transaction_id, payment_method=payment_method)
            else:
                # someone else moved it first; report what is stored now
                payment = await uow.payment_repository.get_by_order_id(order_id) or payment
        return payment, applied

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    async def apply_gateway_status(
        self,
        order_id: str,
        transaction_status: Optional[str],
        transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> SettlementResult:
        target = map_gateway_status(transaction_status)
        if target is None:
            payment = await self.get_payment(order_id)
            logger.info(
                "settlement_ignored",
                order_id=order_id,
                transaction_status=transaction_status,
                current_status=payment.status.value,
            )
            return SettlementResult(order_id=order_id, status=payment.status.value, applied=False)

        target_status = PaymentStatus(target)
        payment, applied = await self.update_status(order_id, target_status, transaction_id, payment_method)
        result = SettlementResult(order_id=order_id, status=payment.status.value, applied=applied)

        if payment.status is PaymentStatus.PAID:
            if applied:
                event = PaymentPaid(
                    order_id=order_id,
                    transaction_id=transaction_id,
                    split_payment_enabled=payment.split_payment_enabled,
                )
                logger.info(event.name, **event.as_log_fields())
            await self._bookkeeping(payment, result)
        elif applied and payment.status.is_terminal:
            event = PaymentClosed(order_id=order_id, status=payment.status.value)
            logger.info(event.name, **event.as_log_fields())
        elif not applied and payment.status is not target_status:
            logger.warning(
                "settlement_conflict",
                order_id=order_id,
                current_status=payment.status.value,
                requested_status=target_status.value,
            )
        return result

    async def apply_transaction(self, status: GatewayTransactionStatus) -> SettlementResult:
        return await self.apply_gateway_status(
            status.order_id,
            status.transaction_status,
            status.transaction_id,
            status.payment_type,
        )

    async def reconcile_from_gateway(self, order_id: str) -> SettlementResult:
        """Poll the gateway with the credentials the payment was routed through."""
        gateway, config = self._require_gateway()
        payment = await self.get_payment(order_id)
        credentials = await config.routing_credentials(payment.split_payment_enabled, payment.instructor_id)
        status = await gateway.query_status(order_id, credentials)
        if status.transaction_status is None:
            logger.info("settlement_unknown_at_gateway", order_id=order_id)
            return SettlementResult(order_id=order_id, status=payment.status.value, applied=False)
        return await self.apply_transaction(status)

    async def handle_notification(self, body: bytes) -> SettlementResult:
        """Verify and apply an HTTP notification posted by the gateway."""
        gateway, config = self._require_gateway()
        notification = gateway.parse_notification(body)
        payment = await self.get_payment(notification.order_id)
        if self._verify_signature:
            credentials = await config.routing_credentials(payment.split_payment_enabled, payment.instructor_id)
            gateway.verify_notification(notification, credentials)
        logger.info(
            "gateway_notification",
            order_id=notification.order_id,
            transaction_status=notification.transaction_status,
        )
        return await self.apply_transaction(notification)

    def _require_gateway(self) -> tuple[PaymentGateway, PlatformConfigService]:
        if self._gateway is None or self._config is None:
            raise RuntimeError("SettlementService needs a gateway and platform config for this operation")
        return self._gateway, self._config

    # ------------------------------------------------------------------
    # Phase 2 bookkeeping
    # ------------------------------------------------------------------
    def _tasks_for(self, payment: Payment) -> list[OutboxTask]:
        tasks = [OutboxTask.ENROLLMENT]
        if payment.split_payment_enabled:
            tasks.append(OutboxTask.REVENUE_SPLIT)
        return tasks

    async def _run_task(self, task: OutboxTask, payment: Payment) -> bool:
        if task is OutboxTask.ENROLLMENT:
            return await ensure_enrollment(self._uow_factory, payment.user_id, payment.course_id, payment.id)
        return await self._ensure_revenue_split(payment)

    async def _ensure_revenue_split(self, payment: Payment) -> bool:
        if not payment.split_payment_enabled:
            return False
        split = RevenueSplit.from_payment(payment)
        try:
            async with self._uow_factory() as uow:
                if await uow.revenue_split_repository.get_by_payment_id(payment.id) is not None:
                    return False
                await uow.revenue_split_repository.create(split)
        except DuplicateRecordException:
            return False
        logger.info(
            "revenue_split_created",
            order_id=payment.order_id,
            instructor_id=payment.instructor_id,
            platform_fee=payment.platform_fee,
            instructor_share=payment.instructor_share,
        )
        return True

    async def _bookkeeping(self, payment: Payment, result: SettlementResult) -> None:
        for task in self._tasks_for(payment):
            try:
                created = await self._run_task(task, payment)
            except Exception as exc:  # payment wins over bookkeeping
                event = BookkeepingDeferred(order_id=payment.order_id, task=task.value, error=str(exc))
                logger.error(event.name, exc_info=True, **event.as_log_fields())
                await self._enqueue(payment.order_id, task, str(exc))
                result.deferred_tasks.append(task.value)
                continue
            if task is OutboxTask.ENROLLMENT:
                result.enrollment_created = created
            else:
                result.revenue_split_created = created

    async def _enqueue(self, order_id: str, task: OutboxTask, error: str) -> None:
        try:
            async with self._uow_factory() as uow:
                await uow.outbox_repository.add(SettlementOutboxEntry.enqueue(order_id, task, error))
        except Exception:
            # the store itself is failing; the log line is the only trace left
            logger.error("outbox_enqueue_failed", order_id=order_id, task=task.value, exc_info=True)

    async def retry_outbox(self, limit: int = 100) -> dict[str, int]:
        """Replay pending bookkeeping entries. Safe to run concurrently with settlement."""
        async with self._uow_factory(readonly=True) as uow:
            entries = await uow.outbox_repository.list_pending(limit)

        stats = {"processed": 0, "succeeded": 0, "failed": 0}
        for entry in entries:
            stats["processed"] += 1
            try:
                async with self._uow_factory(readonly=True) as uow:
                    payment = await uow.payment_repository.get_by_order_id(entry.order_id)
                if payment is None:
                    raise PaymentNotFoundException(entry.order_id)
                if payment.status is PaymentStatus.PAID:
                    await self._run_task(entry.task, payment)
                entry.mark_done()
                stats["succeeded"] += 1
            except Exception as exc:
                entry.record_failure(str(exc))
                stats["failed"] += 1
                logger.warning(
                    "outbox_retry_failed",
                    order_id=entry.order_id,
                    task=entry.task.value,
                    attempts=entry.attempts,
                    error=str(exc),
                )
            async with self._uow_factory() as uow:
                await uow.outbox_repository.update(entry)

        if stats["processed"]:
            logger.info("outbox_replayed", **stats)
        return stats
