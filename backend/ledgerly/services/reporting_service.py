# Overview: Dashboard aggregates and report summaries derived from the entity collections.

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta

from ..extensions import db
from ..models import Customer, Product, Invoice, Receipt
from ..constants import (
    CUSTOMER_ACTIVE,
    INVOICE_PAID,
    INVOICE_PENDING,
    INVOICE_OVERDUE,
    INVOICE_OUTSTANDING_STATUSES,
    LOW_STOCK_STATUSES,
    RECEIPT_COMPLETED,
    RECEIPT_REFUNDED,
)
from ledgerly.time_utils import utcnow


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


TIME_RANGES = ("today", "week", "month", "quarter", "year")

# Period deltas compare the trailing window against the one before it
PERIOD_DAYS = 30
NO_BASELINE_CHANGE = "+100%"


@dataclass(frozen=True)
class DashboardStats:
    total_revenue: int
    outstanding_payments: int
    low_stock_items: int
    total_invoices: int
    total_paid: int
    total_customers: int
    active_customers: int
    overdue_invoices: int
    total_receipts: int
    today_receipts: int
    receipts_revenue: int
    monthly_revenue: int
    weekly_revenue: int
    revenue_change: str
    invoice_change: str
    customer_change: str
    average_invoice_value: float
    payment_collection_rate: float

    def to_dict(self) -> dict:
        return asdict(self)


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def _in_window(dt: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    if dt is None:
        return False
    if start is not None and dt < start:
        return False
    if end is not None and dt >= end:
        return False
    return True


def _invoice_date(invoice: Invoice) -> datetime:
    return invoice.issue_date or invoice.created_at


def format_change(current: float, previous: float) -> str:
    """
    Percent change with an explicit sign ("+12.5%", "-3.0%").

    A zero baseline cannot be divided by; it reports the fixed "+100%".
    """
    if previous <= 0:
        return NO_BASELINE_CHANGE
    pct = (current - previous) / previous * 100
    sign = "+" if current > previous else ""
    return f"{sign}{pct:.1f}%"


def time_range_start(time_range: str, now: datetime | None = None) -> datetime:
    """Start of the calendar period containing now."""
    now = now or utcnow()
    today = _start_of_day(now)
    if time_range == "today":
        return today
    if time_range == "week":
        return today - timedelta(days=today.weekday())
    if time_range == "month":
        return today.replace(day=1)
    if time_range == "quarter":
        first_month = ((today.month - 1) // 3) * 3 + 1
        return today.replace(month=first_month, day=1)
    if time_range == "year":
        return today.replace(month=1, day=1)
    raise ReportError(f"time_range must be one of {', '.join(TIME_RANGES)}")


def revenue_for_range(
    start: datetime | None,
    end: datetime | None = None,
    *,
    invoices: list[Invoice] | None = None,
    receipts: list[Receipt] | None = None,
) -> int:
    """
    Paid invoice amounts plus completed receipt amounts in [start, end).

    None on either side leaves that side open.
    """
    if invoices is None:
        invoices = db.session.query(Invoice).all()
    if receipts is None:
        receipts = db.session.query(Receipt).all()

    invoice_revenue = sum(
        inv.amount_cents for inv in invoices
        if inv.status == INVOICE_PAID and _in_window(_invoice_date(inv), start, end)
    )
    receipt_revenue = sum(
        rec.amount_cents for rec in receipts
        if rec.status == RECEIPT_COMPLETED and _in_window(rec.created_at, start, end)
    )
    return invoice_revenue + receipt_revenue


def compute_dashboard_stats(*, now: datetime | None = None) -> DashboardStats:
    """Pure recomputation over the current collections; nothing is cached here."""
    now = now or utcnow()
    today = _start_of_day(now)
    one_week_ago = today - timedelta(days=7)
    one_month_ago = today - timedelta(days=PERIOD_DAYS)
    two_months_ago = today - timedelta(days=PERIOD_DAYS * 2)

    invoices = db.session.query(Invoice).all()
    receipts = db.session.query(Receipt).all()
    customers = db.session.query(Customer).all()
    products = db.session.query(Product).all()

    today_receipts = [
        rec for rec in receipts
        if rec.status == RECEIPT_COMPLETED and _start_of_day(rec.created_at) == today
    ]
    receipts_revenue = sum(rec.amount_cents for rec in today_receipts)

    monthly_revenue = revenue_for_range(one_month_ago, None, invoices=invoices, receipts=receipts)
    weekly_revenue = revenue_for_range(one_week_ago, None, invoices=invoices, receipts=receipts)
    prev_monthly_revenue = revenue_for_range(two_months_ago, one_month_ago, invoices=invoices, receipts=receipts)

    total_paid_invoices = sum(inv.amount_cents for inv in invoices if inv.status == INVOICE_PAID)
    total_completed_receipts = sum(rec.amount_cents for rec in receipts if rec.status == RECEIPT_COMPLETED)
    total_outstanding = sum(
        inv.amount_cents - inv.paid_amount_cents
        for inv in invoices
        if inv.status in INVOICE_OUTSTANDING_STATUSES
    )

    current_invoices = sum(1 for inv in invoices if _in_window(inv.created_at, one_month_ago, None))
    prev_invoices = sum(1 for inv in invoices if _in_window(inv.created_at, two_months_ago, one_month_ago))
    current_customers = sum(1 for c in customers if _in_window(c.created_at, one_month_ago, None))
    prev_customers = sum(1 for c in customers if _in_window(c.created_at, two_months_ago, one_month_ago))

    total_invoice_amount = sum(inv.amount_cents for inv in invoices)
    total_paid_amount = sum(inv.paid_amount_cents for inv in invoices)
    if total_invoice_amount > 0:
        payment_collection_rate = total_paid_amount / total_invoice_amount * 100
    else:
        payment_collection_rate = 100.0

    average_invoice_value = total_invoice_amount / len(invoices) if invoices else 0.0

    return DashboardStats(
        total_revenue=total_paid_invoices + total_completed_receipts,
        outstanding_payments=total_outstanding,
        low_stock_items=sum(1 for p in products if p.status in LOW_STOCK_STATUSES),
        total_invoices=len(invoices),
        total_paid=total_paid_invoices,
        total_customers=len(customers),
        active_customers=sum(1 for c in customers if c.status == CUSTOMER_ACTIVE),
        overdue_invoices=sum(1 for inv in invoices if inv.status == INVOICE_OVERDUE),
        total_receipts=len(receipts),
        today_receipts=len(today_receipts),
        receipts_revenue=receipts_revenue,
        monthly_revenue=monthly_revenue,
        weekly_revenue=weekly_revenue,
        revenue_change=format_change(monthly_revenue, prev_monthly_revenue),
        invoice_change=format_change(current_invoices, prev_invoices),
        customer_change=format_change(current_customers, prev_customers),
        average_invoice_value=average_invoice_value,
        payment_collection_rate=payment_collection_rate,
    )


def summarize_invoices(invoices: list[Invoice]) -> dict:
    summary = {"paid": 0, "pending": 0, "overdue": 0, "total": 0}
    for inv in invoices:
        summary["total"] += inv.amount_cents
        if inv.status == INVOICE_PAID:
            summary["paid"] += inv.amount_cents
        elif inv.status == INVOICE_PENDING:
            summary["pending"] += inv.amount_cents
        elif inv.status == INVOICE_OVERDUE:
            summary["overdue"] += inv.amount_cents
    return summary


def summarize_receipts(receipts: list[Receipt]) -> dict:
    summary = {"completed": 0, "refunded": 0, "total": 0}
    for rec in receipts:
        summary["total"] += rec.amount_cents
        if rec.status == RECEIPT_COMPLETED:
            summary["completed"] += rec.amount_cents
        elif rec.status == RECEIPT_REFUNDED:
            summary["refunded"] += rec.amount_cents
    return summary


def period_report(time_range: str, *, now: datetime | None = None) -> dict:
    """Invoice/receipt summaries and revenue for the calendar period containing now."""
    now = now or utcnow()
    start = time_range_start(time_range, now)

    invoices = [inv for inv in db.session.query(Invoice).all() if _in_window(_invoice_date(inv), start, None)]
    receipts = [rec for rec in db.session.query(Receipt).all() if _in_window(rec.created_at, start, None)]

    return {
        "time_range": time_range,
        "start": start,
        "invoices": summarize_invoices(invoices),
        "receipts": summarize_receipts(receipts),
        "total_revenue": revenue_for_range(start, None, invoices=invoices, receipts=receipts),
    }


AGING_BUCKETS = ("0-30", "31-60", "60+")


def _aging_bucket(days_past_due: int) -> str:
    if days_past_due <= 30:
        return "0-30"
    if days_past_due <= 60:
        return "31-60"
    return "60+"


def aging_report(*, now: datetime | None = None) -> dict:
    """
    Group outstanding balances by days past due.

    Invoices not yet due (or without a due date) count as 0 days past due.
    """
    now = now or utcnow()
    buckets = {name: {"count": 0, "balance_cents": 0, "invoice_ids": []} for name in AGING_BUCKETS}

    invoices = (
        db.session.query(Invoice)
        .filter(Invoice.status.in_(INVOICE_OUTSTANDING_STATUSES))
        .order_by(Invoice.due_date.asc())
        .all()
    )
    for inv in invoices:
        balance = inv.amount_cents - inv.paid_amount_cents
        if balance <= 0:
            continue
        days = max(0, (now - inv.due_date).days) if inv.due_date else 0
        bucket = buckets[_aging_bucket(days)]
        bucket["count"] += 1
        bucket["balance_cents"] += balance
        bucket["invoice_ids"].append(inv.id)

    return {
        "as_of": now,
        "buckets": buckets,
        "total_cents": sum(b["balance_cents"] for b in buckets.values()),
    }
