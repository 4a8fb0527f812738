# Overview: Periodic housekeeping run by the scheduler tick.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .invoice_service import sweep_overdue_invoices
from .notification_service import apply_auto_read
from ledgerly.time_utils import utcnow


@dataclass
class TickResult:
    overdue_invoice_ids: list[str] = field(default_factory=list)
    auto_read_count: int = 0

    def to_dict(self) -> dict:
        return {
            "overdue_invoice_ids": list(self.overdue_invoice_ids),
            "auto_read_count": self.auto_read_count,
        }


def run_scheduled_tasks(*, now: datetime | None = None) -> TickResult:
    """
    Promote past-due invoices and flip expired manual notifications to read.

    Both steps are idempotent, so running the tick twice at the same instant
    changes nothing the second time.
    """
    now = now or utcnow()
    return TickResult(
        overdue_invoice_ids=sweep_overdue_invoices(now=now),
        auto_read_count=apply_auto_read(now=now),
    )
