"""Celery beat schedule configuration."""
from __future__ import annotations

BOOKKEEPING_RETRY_INTERVAL_SECONDS = 300

CELERY_BEAT_SCHEDULE = {
    # 重放支付成功后失败的报名/分账写入
    "settlements-retry-bookkeeping": {
        "task": "settlements.retry_bookkeeping",
        "schedule": BOOKKEEPING_RETRY_INTERVAL_SECONDS,
        "kwargs": {"limit": 100},
    },
}
