# Overview: Derives the notification feed from entity state and merges it with stored read flags.

"""
Notification Engine

WHY: The feed is a view over invoices, products, customers and receipts.
It is rebuilt from scratch after every settled batch of mutations; stored
rows only carry what cannot be re-derived, the read flag.

IDENTITY: system ids are "<tag>_<entity id>_<last-modified stamp>". An
unchanged entity yields the same id on every regeneration, so its read flag
survives; any modification yields a new id with a fresh read value.

MERGE:
- candidate id already stored -> keep stored read, refresh everything else
- candidate id not stored     -> insert with generated read value
- stored system id not generated any more -> drop
- manual rows are kept
- anything older than the retention window is pruned

ORDER: priority (high, medium, low), then newest first.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import case

from ..extensions import db
from ..models import Customer, Product, Invoice, Receipt, Notification
from ..constants import (
    INVOICE_DRAFT,
    INVOICE_PAID,
    INVOICE_OVERDUE,
    INVOICE_TERMINAL_STATUSES,
    LOW_STOCK_STATUSES,
    STOCK_OUT,
    NOTIFY_SUCCESS,
    NOTIFY_WARNING,
    NOTIFY_ERROR,
    NOTIFY_PAYMENT,
    NOTIFY_INVOICE,
    NOTIFICATION_TYPES,
    PRIORITY_HIGH,
    PRIORITY_MEDIUM,
    PRIORITY_LOW,
    PRIORITY_RANK,
    SOURCE_SYSTEM,
    SOURCE_MANUAL,
)
from ..validation import NotFoundError, ValidationError
from ledgerly.time_utils import utcnow, to_stamp

RECENT_PAYMENT_DAYS = 3
RECENT_RECEIPT_DAYS = 3
NEW_CUSTOMER_DAYS = 7
NEW_INVOICE_DAYS = 7
DUE_SOON_DAYS = 7

DEFAULT_RETENTION_DAYS = 60
DEFAULT_HIGH_VALUE_CENTS = 100_000
DEFAULT_AUTO_READ_SECONDS = 5


def format_money(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def _modified(entity) -> datetime:
    return entity.updated_at or entity.created_at


def _notification_id(tag: str, entity) -> str:
    return f"{tag}_{entity.id}_{to_stamp(_modified(entity))}"


def _candidate(tag, entity, *, type, title, message, priority, read, action_label, action_target):
    return {
        "id": _notification_id(tag, entity),
        "type": type,
        "title": title,
        "message": message,
        "priority": priority,
        "read": read,
        "action_label": action_label,
        "action_target": action_target,
        "data_id": entity.id,
        "created_at": _modified(entity),
    }


def generate_candidates(*, now: datetime, high_value_cents: int = DEFAULT_HIGH_VALUE_CENTS) -> list[dict]:
    """One candidate per qualifying condition, scanned from the current collections."""
    invoices = db.session.query(Invoice).all()
    products = db.session.query(Product).all()
    customers = db.session.query(Customer).all()
    receipts = db.session.query(Receipt).all()

    candidates: list[dict] = []

    for inv in invoices:
        target = f"invoice:{inv.id}"

        if inv.status == INVOICE_OVERDUE:
            days = max(0, (now - inv.due_date).days) if inv.due_date else 0
            candidates.append(_candidate(
                "overdue", inv,
                type=NOTIFY_ERROR,
                title="Invoice Overdue",
                message=f"Invoice #{inv.number} for {inv.customer_name} is {_plural(days, 'day')} overdue",
                priority=PRIORITY_HIGH,
                read=False,
                action_label="View Invoice",
                action_target=target,
            ))

        if inv.status == INVOICE_PAID and _modified(inv) > now - timedelta(days=RECENT_PAYMENT_DAYS):
            candidates.append(_candidate(
                "payment", inv,
                type=NOTIFY_PAYMENT,
                title="Payment Received",
                message=f"{format_money(inv.paid_amount_cents)} payment from {inv.customer_name}",
                priority=PRIORITY_MEDIUM,
                read=True,
                action_label="View Invoice",
                action_target=target,
            ))

        if inv.status != INVOICE_DRAFT and inv.created_at > now - timedelta(days=NEW_INVOICE_DAYS):
            candidates.append(_candidate(
                "invoice", inv,
                type=NOTIFY_INVOICE,
                title="Invoice Created",
                message=f"Invoice #{inv.number} for {inv.customer_name} ({format_money(inv.amount_cents)})",
                priority=PRIORITY_LOW,
                read=True,
                action_label="View Invoice",
                action_target=target,
            ))

        if (
            inv.due_date is not None
            and inv.status not in INVOICE_TERMINAL_STATUSES
            and now <= inv.due_date <= now + timedelta(days=DUE_SOON_DAYS)
        ):
            days = (inv.due_date - now).days
            when = "today" if days == 0 else f"in {_plural(days, 'day')}"
            candidates.append(_candidate(
                "due", inv,
                type=NOTIFY_WARNING,
                title="Invoice Due Soon",
                message=f"Invoice #{inv.number} for {inv.customer_name} is due {when}",
                priority=PRIORITY_MEDIUM,
                read=False,
                action_label="View Invoice",
                action_target=target,
            ))

        if inv.status == INVOICE_PAID and inv.amount_cents >= high_value_cents:
            candidates.append(_candidate(
                "highvalue", inv,
                type=NOTIFY_PAYMENT,
                title="High-Value Payment",
                message=f"Invoice #{inv.number} from {inv.customer_name} was paid ({format_money(inv.amount_cents)})",
                priority=PRIORITY_MEDIUM,
                read=True,
                action_label="View Invoice",
                action_target=target,
            ))

    for product in products:
        if product.status not in LOW_STOCK_STATUSES:
            continue
        out = product.status == STOCK_OUT
        candidates.append(_candidate(
            "stock", product,
            type=NOTIFY_ERROR if out else NOTIFY_WARNING,
            title="Out of Stock" if out else "Low Stock Alert",
            message=(
                f"{product.name} is out of stock."
                if out
                else f"{product.name} is running low ({product.quantity} left)."
            ),
            priority=PRIORITY_HIGH if out else PRIORITY_MEDIUM,
            read=False,
            action_label="Manage Stock",
            action_target=f"product:{product.id}",
        ))

    for customer in customers:
        if customer.created_at > now - timedelta(days=NEW_CUSTOMER_DAYS):
            candidates.append(_candidate(
                "customer", customer,
                type=NOTIFY_SUCCESS,
                title="New Customer",
                message=f"{customer.name} was added as a customer.",
                priority=PRIORITY_LOW,
                read=True,
                action_label="View Customer",
                action_target=f"customer:{customer.id}",
            ))

    for receipt in receipts:
        if receipt.created_at > now - timedelta(days=RECENT_RECEIPT_DAYS):
            candidates.append(_candidate(
                "receipt", receipt,
                type=NOTIFY_SUCCESS,
                title="Receipt Issued",
                message=f"Receipt #{receipt.number} for {receipt.customer_name} ({format_money(receipt.amount_cents)})",
                priority=PRIORITY_LOW,
                read=True,
                action_label="View Receipt",
                action_target=f"receipt:{receipt.id}",
            ))

    return candidates


def prune_notifications(*, now: datetime, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
    cutoff = now - timedelta(days=retention_days)
    deleted = db.session.query(Notification).filter(
        Notification.created_at < cutoff
    ).delete(synchronize_session="fetch")
    db.session.flush()
    return deleted


def regenerate_notifications(
    *,
    now: datetime | None = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    high_value_cents: int = DEFAULT_HIGH_VALUE_CENTS,
) -> list[Notification]:
    """Rebuild the system feed, carrying read flags over by id, then prune."""
    now = now or utcnow()
    candidates = generate_candidates(now=now, high_value_cents=high_value_cents)

    existing = {
        n.id: n
        for n in db.session.query(Notification).filter_by(source=SOURCE_SYSTEM).all()
    }

    seen = set()
    for data in candidates:
        if data["id"] in seen:
            continue
        seen.add(data["id"])

        row = existing.get(data["id"])
        if row is None:
            db.session.add(Notification(source=SOURCE_SYSTEM, **data))
            continue
        for key, value in data.items():
            if key in ("id", "read"):
                continue
            setattr(row, key, value)

    for notification_id, row in existing.items():
        if notification_id not in seen:
            db.session.delete(row)

    db.session.flush()
    prune_notifications(now=now, retention_days=retention_days)
    return list_notifications()


def list_notifications(*, unread_only: bool = False) -> list[Notification]:
    priority_order = case(PRIORITY_RANK, value=Notification.priority, else_=len(PRIORITY_RANK))
    query = db.session.query(Notification)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(priority_order.asc(), Notification.created_at.desc(), Notification.id.asc()).all()


def unread_count() -> int:
    return db.session.query(Notification).filter(Notification.read.is_(False)).count()


def mark_notification_read(notification_id: str) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    notification.read = True
    db.session.flush()
    return notification


def mark_all_read() -> int:
    updated = db.session.query(Notification).filter(
        Notification.read.is_(False)
    ).update({Notification.read: True}, synchronize_session="fetch")
    db.session.flush()
    return updated


def clear_notifications() -> int:
    """
    Drop the whole feed. System entries whose conditions still hold come
    back on the next regeneration with their generated read value.
    """
    deleted = db.session.query(Notification).delete(synchronize_session="fetch")
    db.session.flush()
    return deleted


def add_notification(
    payload: dict,
    *,
    now: datetime | None = None,
    auto_read_seconds: int = DEFAULT_AUTO_READ_SECONDS,
    tag: str = "manual",
) -> Notification:
    """
    Add a manual notification (bypasses generation).

    tag prefixes the id: "manual" for caller-supplied entries, "activity"
    for the store's per-mutation notices.

    Every type except "error" is scheduled to flip to read after
    auto_read_seconds; the flip is applied by apply_auto_read.

    Raises:
        ValidationError: On unknown type/priority or missing title/message
    """
    now = now or utcnow()
    payload = payload or {}

    ntype = payload.get("type")
    if ntype not in NOTIFICATION_TYPES:
        raise ValidationError(f"type must be one of {sorted(NOTIFICATION_TYPES)}")
    priority = payload.get("priority") or PRIORITY_MEDIUM
    if priority not in PRIORITY_RANK:
        raise ValidationError(f"priority must be one of {sorted(PRIORITY_RANK)}")
    title = (payload.get("title") or "").strip()
    message = (payload.get("message") or "").strip()
    if not title or not message:
        raise ValidationError("title and message are required")

    action = payload.get("action") or {}
    millis = int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)

    notification = Notification(
        id=f"{tag}_{millis}_{secrets.token_hex(3)}",
        type=ntype,
        title=title,
        message=message,
        read=False,
        priority=priority,
        action_label=action.get("label"),
        action_target=action.get("target"),
        data_id=payload.get("data_id"),
        source=SOURCE_MANUAL,
        auto_read_at=None if ntype == NOTIFY_ERROR else now + timedelta(seconds=auto_read_seconds),
        created_at=now,
    )
    db.session.add(notification)
    db.session.flush()
    return notification


def apply_auto_read(*, now: datetime | None = None) -> int:
    """Flip manual notifications whose auto-read time has passed."""
    now = now or utcnow()
    updated = db.session.query(Notification).filter(
        Notification.source == SOURCE_MANUAL,
        Notification.read.is_(False),
        Notification.auto_read_at.isnot(None),
        Notification.auto_read_at <= now,
    ).update({Notification.read: True}, synchronize_session="fetch")
    db.session.flush()
    return updated
