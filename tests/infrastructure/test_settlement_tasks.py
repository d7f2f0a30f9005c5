from application.dtos.payments import SettlementResult
from infrastructure.tasks import celery_app
from infrastructure.tasks.tasks import settlement as settlement_tasks
from infrastructure.tasks.utils.base_task import job_fields


class _Service:
    def __init__(self):
        self.calls = []

    async def retry_outbox(self, limit):
        self.calls.append(("retry_outbox", limit))
        return {"processed": 2, "succeeded": 2, "failed": 0}

    async def reconcile_from_gateway(self, order_id):
        self.calls.append(("reconcile", order_id))
        return SettlementResult(order_id=order_id, status="paid", applied=True, enrollment_created=True)


def _patch(monkeypatch) -> _Service:
    service = _Service()

    async def fake_with_settlement(fn):
        return await fn(service)

    monkeypatch.setattr(settlement_tasks, "_with_settlement", fake_with_settlement)
    return service


def test_beat_schedules_outbox_replay():
    entry = celery_app.conf.beat_schedule["settlements-retry-bookkeeping"]
    assert entry["task"] == "settlements.retry_bookkeeping"
    assert entry["kwargs"] == {"limit": 100}


def test_retry_bookkeeping_task(monkeypatch):
    service = _patch(monkeypatch)

    result = settlement_tasks.retry_bookkeeping.apply(kwargs={"limit": 5})

    assert result.get() == {"processed": 2, "succeeded": 2, "failed": 0}
    assert service.calls == [("retry_outbox", 5)]


def test_query_status_task_returns_settlement(monkeypatch):
    service = _patch(monkeypatch)

    result = settlement_tasks.query_status.apply(args=("ord-1",))

    assert result.get()["status"] == "paid"
    assert result.get()["enrollment_created"] is True
    assert service.calls == [("reconcile", "ord-1")]


def test_job_fields_surface_the_order_id():
    fields = job_fields(settlement_tasks.query_status, "task-1", ("ord-1",), {})

    assert fields == {
        "task_id": "task-1",
        "task_name": "payments.query_status",
        "retries": 0,
        "order_id": "ord-1",
    }
    assert job_fields(settlement_tasks.query_status, "task-2", (), {"order_id": "ord-2"})["order_id"] == "ord-2"


def test_job_fields_without_an_order():
    fields = job_fields(settlement_tasks.retry_bookkeeping, "task-3", (), {"limit": 5})

    assert "order_id" not in fields
    assert fields["task_name"] == "settlements.retry_bookkeeping"
