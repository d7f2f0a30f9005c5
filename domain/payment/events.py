"""
Settlement domain events.

Dataclass events record the payment lifecycle facts the settlement flow
produces. They are emitted as structured log lines by the application layer.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class SettlementEvent:
    order_id: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return _EVENT_NAMES[type(self)]

    def as_log_fields(self) -> dict:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


@dataclass
class PaymentPaid(SettlementEvent):
    transaction_id: Optional[str] = None
    split_payment_enabled: bool = False


@dataclass
class PaymentClosed(SettlementEvent):
    status: str = ""


@dataclass
class BookkeepingDeferred(SettlementEvent):
    task: str = ""
    error: Optional[str] = None


_EVENT_NAMES = {
    PaymentPaid: "payment_paid",
    PaymentClosed: "payment_closed",
    BookkeepingDeferred: "bookkeeping_deferred",
}
