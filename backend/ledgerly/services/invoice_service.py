# Overview: Service-layer operations for invoices; applies the customer and stock side effects of each change.

"""
Invoice Service

WHY: Invoices drive both receivables and stock. Every mutation here applies
its cross-entity effects in the same transaction, so when a call returns the
customer balance and product quantities already reflect it.

CONSISTENCY RULES:
- Create: matching customer gets outstanding += amount, total_spent += amount,
  the invoice id appended to invoice_ids, last_transaction_at = now.
- First transition to "sent": stock is taken for every line (see
  inventory_service); shortages are returned, never raised.
- Delete: customer outstanding -= max(0, amount - paid), floored at 0.
- Payment: paid += amount, status "paid" once paid >= amount, customer
  outstanding -= amount floored at 0. Overpayment is allowed.
- The paid amount is not a writable field; record_payment is its only writer.

Callers own the transaction: nothing here commits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..extensions import db
from ..models import Invoice, InvoiceItem
from ..constants import (
    INVOICE_DRAFT,
    INVOICE_SENT,
    INVOICE_PAID,
    INVOICE_OVERDUE,
    INVOICE_TERMINAL_STATUSES,
)
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    validate_line_items,
    enforce_rules_invoice,
    NotFoundError,
    ValidationError,
)
from .concurrency import lock_for_update
from .document_service import new_entity_id, next_invoice_number
from .inventory_service import StockShortage, reduce_stock_for_invoice_items
from . import customer_service
from ledgerly.time_utils import utcnow

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "customer_email",
        "customer_phone",
        "issue_date",
        "due_date",
        "amount_cents",
        "status",
        "notes",
    },
    required_on_create={"customer_name"},
)


@dataclass
class InvoiceUpdateResult:
    """
    Outcome of an invoice create/update.

    shortages is non-empty when a send transition could not take every
    requested unit from stock; the invoice change itself still succeeded.
    stock_taken is set when this change performed the one-time stock reduction.
    """
    invoice: Invoice
    shortages: list[StockShortage] = field(default_factory=list)
    stock_taken: bool = False

    @property
    def has_shortages(self) -> bool:
        return bool(self.shortages)

    def warning_message(self) -> str | None:
        if not self.shortages:
            return None
        parts = [
            f"{s.name} (requested {s.requested}, available {s.available})"
            for s in self.shortages
        ]
        return f"Insufficient stock for invoice {self.invoice.number}: " + ", ".join(parts)


def get_invoice(invoice_id: str) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(*, status: str | None = None, customer_name: str | None = None) -> list[Invoice]:
    query = db.session.query(Invoice)
    if status:
        query = query.filter(Invoice.status == status)
    if customer_name:
        query = query.filter(Invoice.customer_name == customer_name)
    return query.order_by(Invoice.created_at.desc(), Invoice.number.desc()).all()


def _build_items(raw_items) -> list[InvoiceItem]:
    cleaned = validate_line_items(raw_items, name_key="description", price_key="unit_price_cents")
    items = []
    for position, raw in enumerate(cleaned):
        if not raw["description"]:
            raise ValidationError(f"item {position + 1} description is required")
        items.append(InvoiceItem(
            position=position,
            product_id=raw.get("product_id") or None,
            description=raw["description"],
            quantity=raw["quantity"],
            unit_price_cents=raw.get("unit_price_cents", 0),
        ))
    return items


def _items_total(items: list[InvoiceItem]) -> int:
    return sum(item.quantity * item.unit_price_cents for item in items)


def _apply_send_transition(invoice: Invoice, *, now: datetime) -> list[StockShortage]:
    """
    Take stock for the invoice lines exactly once.

    The inventory_adjusted flag is set even when lines fall short, so a
    later re-send never deducts again.
    """
    if invoice.inventory_adjusted:
        return []
    shortages = reduce_stock_for_invoice_items(
        invoice.items,
        now=now,
        reason=f"Invoice {invoice.number}",
    )
    invoice.inventory_adjusted = True
    return shortages


def create_invoice(payload: dict, *, now: datetime | None = None) -> InvoiceUpdateResult:
    """
    Create an invoice and apply its customer effects.

    Payload keys are the writable invoice fields plus "items", a list of
    {product_id?, description, quantity, unit_price_cents}. amount_cents
    defaults to the sum of the lines.

    Raises:
        ValidationError: On missing customer_name or invalid fields/items
    """
    now = now or utcnow()
    payload = dict(payload or {})
    raw_items = payload.pop("items", None)

    patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_POLICY, partial=False)
    enforce_rules_invoice(patch)
    items = _build_items(raw_items)

    status = patch.pop("status", None) or INVOICE_DRAFT
    issue_date = patch.get("issue_date") or now

    invoice = Invoice(
        id=new_entity_id(),
        number=next_invoice_number(issue_date.year),
        status=status,
        paid_amount_cents=0,
        inventory_adjusted=False,
        issue_date=issue_date,
        created_at=now,
        updated_at=now,
    )
    for key, value in patch.items():
        if value is not None:
            setattr(invoice, key, value)
    if patch.get("amount_cents") is None:
        invoice.amount_cents = _items_total(items)
    invoice.items = items

    db.session.add(invoice)
    db.session.flush()

    customer = customer_service.find_customer_by_name(invoice.customer_name)
    if customer is not None:
        invoice.customer_id = customer.id
        customer_service.record_invoice_created(customer, invoice.id, invoice.amount_cents, now=now)

    shortages = []
    stock_taken = False
    if status == INVOICE_SENT:
        stock_taken = not invoice.inventory_adjusted
        shortages = _apply_send_transition(invoice, now=now)

    db.session.flush()
    return InvoiceUpdateResult(invoice=invoice, shortages=shortages, stock_taken=stock_taken)


def update_invoice(invoice_id: str, payload: dict, *, now: datetime | None = None) -> InvoiceUpdateResult:
    """
    Merge writable fields (and optionally replace the lines).

    Replacing the lines without an explicit amount_cents recomputes the
    amount from them. A first move into "sent" takes stock.

    Raises:
        NotFoundError: If the invoice does not exist
        ValidationError: On invalid fields/items
    """
    now = now or utcnow()
    invoice = get_invoice(invoice_id)
    payload = dict(payload or {})
    has_items = "items" in payload
    raw_items = payload.pop("items", None)

    patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_POLICY, partial=True)
    enforce_rules_invoice(patch)

    if has_items:
        items = _build_items(raw_items)
        invoice.items = items
        if "amount_cents" not in patch:
            invoice.amount_cents = _items_total(items)

    for key, value in patch.items():
        setattr(invoice, key, value)
    invoice.updated_at = now
    db.session.flush()

    shortages = []
    stock_taken = False
    if patch.get("status") == INVOICE_SENT:
        stock_taken = not invoice.inventory_adjusted
        shortages = _apply_send_transition(invoice, now=now)

    db.session.flush()
    return InvoiceUpdateResult(invoice=invoice, shortages=shortages, stock_taken=stock_taken)


def delete_invoice(invoice_id: str, *, now: datetime | None = None, missing_ok: bool = False) -> bool:
    """
    Delete an invoice and release its unpaid remainder from the customer.

    Returns False only when missing_ok is set and the invoice is absent
    (customer cascades tolerate stale back-references).
    """
    now = now or utcnow()
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        if missing_ok:
            return False
        raise NotFoundError(f"Invoice {invoice_id} not found")

    customer = customer_service.resolve_document_customer(invoice.customer_id, invoice.customer_name)
    if customer is not None:
        customer_service.record_invoice_removed(
            customer,
            invoice.id,
            invoice.amount_cents - invoice.paid_amount_cents,
            now=now,
        )

    db.session.delete(invoice)
    db.session.flush()
    return True


def record_payment(
    invoice_id: str,
    amount_cents: int,
    *,
    payment_method: str | None = None,
    now: datetime | None = None,
) -> Invoice:
    """
    Record a payment against an invoice.

    WHY: Partial payments are common; the invoice flips to "paid" only once
    the running total reaches the amount. Payments are not capped, so an
    overpayment is accepted.

    Raises:
        NotFoundError: If the invoice does not exist
        ValidationError: If amount_cents is not a positive integer
    """
    now = now or utcnow()
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Payment amount must be a positive integer (cents)")

    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")

    invoice.paid_amount_cents += amount_cents
    if invoice.paid_amount_cents >= invoice.amount_cents:
        invoice.status = INVOICE_PAID
    if payment_method:
        note = f"Payment {amount_cents} via {payment_method}"
        invoice.notes = f"{invoice.notes}\n{note}" if invoice.notes else note
    invoice.updated_at = now

    customer = customer_service.resolve_document_customer(invoice.customer_id, invoice.customer_name)
    if customer is not None:
        customer_service.record_invoice_payment(customer, amount_cents, now=now)

    db.session.flush()
    return invoice


def sweep_overdue_invoices(*, now: datetime | None = None) -> list[str]:
    """
    Promote invoices past their due date to "overdue".

    Idempotent: already-overdue and terminal (paid, cancelled) invoices are
    left alone. Returns the ids that changed.
    """
    now = now or utcnow()
    candidates = lock_for_update(
        db.session.query(Invoice).filter(
            Invoice.due_date.isnot(None),
            Invoice.due_date < now,
            Invoice.status != INVOICE_OVERDUE,
            Invoice.status.notin_(INVOICE_TERMINAL_STATUSES),
        )
    ).all()

    promoted = []
    for invoice in candidates:
        invoice.status = INVOICE_OVERDUE
        invoice.updated_at = now
        promoted.append(invoice.id)

    db.session.flush()
    return promoted
