"""Settlement background jobs: outbox replay and gateway status polling.

Each task runs its coroutine with ``asyncio.run`` on a dedicated engine so
pooled connections never outlive the event loop that created them.
"""
from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable

from celery import shared_task

from application.services.platform_config_service import PlatformConfigService
from application.services.settlement_service import SettlementService
from core.config import settings
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.database import build_engine, build_session_factory
from infrastructure.external.payments import get_payment_gateway
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from ..utils.base_task import BaseTask

logger = get_logger(__name__)


async def _with_settlement(fn: Callable[[SettlementService], Awaitable[Any]]) -> Any:
    engine = build_engine(settings.database.url)
    gateway = get_payment_gateway()
    try:
        uow_factory = partial(SQLAlchemyUnitOfWork, build_session_factory(engine))
        service = SettlementService(
            uow_factory,
            gateway,
            PlatformConfigService(uow_factory, payment_settings.fee_configuration()),
            verify_signature=payment_settings.webhook.verify_signature,
        )
        return await fn(service)
    finally:
        await gateway.aclose()
        await engine.dispose()


@shared_task(name="settlements.retry_bookkeeping", bind=True, base=BaseTask)
def retry_bookkeeping(self, limit: int = 100) -> dict:
    """Replay deferred enrollment / revenue split writes."""
    return asyncio.run(_with_settlement(lambda service: service.retry_outbox(limit)))


@shared_task(
    name="payments.query_status",
    bind=True,
    base=BaseTask,
    max_retries=3,
    default_retry_delay=30,
)
def query_status(self, order_id: str) -> dict:
    """Poll the gateway for one order and reconcile the stored payment."""
    try:
        result = asyncio.run(_with_settlement(lambda service: service.reconcile_from_gateway(order_id)))
    except Exception as exc:
        logger.warning("payment_status_poll_failed", order_id=order_id, error=str(exc))
        raise self.retry(exc=exc)
    logger.info("payment_status_polled", order_id=order_id, status=result.status, applied=result.applied)
    return result.model_dump()
