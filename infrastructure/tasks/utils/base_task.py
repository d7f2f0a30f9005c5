"""Base class for settlement jobs: outcome logging keyed by order id"""
from __future__ import annotations

from typing import Any

from celery import Task
from core.logging_config import get_logger

logger = get_logger(__name__)


def job_fields(task: Task, task_id: str, args: Any, kwargs: Any) -> dict:
    """Log fields for one job run; the order id is the only argument worth surfacing."""
    fields = {"task_id": task_id, "task_name": task.name, "retries": task.request.retries or 0}
    order_id = (kwargs or {}).get("order_id")
    if order_id is None and args:
        order_id = args[0] if isinstance(args[0], str) else None
    if order_id is not None:
        fields["order_id"] = order_id
    return fields


class BaseTask(Task):
    """Settlement jobs log every outcome; payload bodies are never logged."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error("settlement_job_failed", error=str(exc), **job_fields(self, task_id, args, kwargs))
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning("settlement_job_retrying", error=str(exc), **job_fields(self, task_id, args, kwargs))
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):  # type: ignore[override]
        fields = job_fields(self, task_id, args, kwargs)
        if isinstance(retval, dict) and "processed" in retval:
            fields["processed"] = retval["processed"]
            fields["failed"] = retval.get("failed", 0)
        logger.info("settlement_job_succeeded", **fields)
        super().on_success(retval, task_id, args, kwargs)
