# Overview: Customer CRUD plus the balance adjustments other services apply to customers.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Customer
from ..constants import CUSTOMER_ACTIVE, WALK_IN_CUSTOMER
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    NotFoundError,
)
from .document_service import new_entity_id
from ledgerly.time_utils import utcnow

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "company", "address", "notes", "status"},
    required_on_create={"name"},
)


def get_customer(customer_id: str) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def find_customer_by_name(name: str | None) -> Customer | None:
    """
    Resolve a document's customer name to a Customer.

    Exact match, oldest first. The walk-in sentinel and blank names never
    resolve.
    """
    if not name or name == WALK_IN_CUSTOMER:
        return None
    return (
        db.session.query(Customer)
        .filter(Customer.name == name)
        .order_by(Customer.created_at.asc(), Customer.id.asc())
        .first()
    )


def resolve_document_customer(customer_id: str | None, customer_name: str | None) -> Customer | None:
    """Prefer the cached id; fall back to the name link."""
    if customer_id:
        customer = db.session.get(Customer, customer_id)
        if customer is not None:
            return customer
    return find_customer_by_name(customer_name)


def list_customers(*, status: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if status:
        query = query.filter(Customer.status == status)
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(payload: dict, *, now: datetime | None = None) -> Customer:
    """
    Create a customer with zeroed aggregates.

    Raises:
        ValidationError: On missing name or invalid status
    """
    now = now or utcnow()
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    customer = Customer(
        id=new_entity_id(),
        status=CUSTOMER_ACTIVE,
        outstanding_cents=0,
        total_spent_cents=0,
        invoice_ids=[],
        created_at=now,
        updated_at=now,
    )
    for key, value in patch.items():
        if value is not None:
            setattr(customer, key, value)

    db.session.add(customer)
    db.session.flush()
    return customer


def update_customer(customer_id: str, payload: dict, *, now: datetime | None = None) -> Customer:
    """
    Merge contact fields and status. Aggregates are not writable.

    NOTE: Renaming a customer does not re-link invoices or receipts that
    reference the old name.
    """
    now = now or utcnow()
    customer = get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)

    for key, value in patch.items():
        setattr(customer, key, value)
    customer.updated_at = now

    db.session.flush()
    return customer


def delete_customer(customer_id: str, *, now: datetime | None = None) -> list[str]:
    """
    Delete a customer after cascading to every invoice it lists.

    Each invoice delete runs the normal reversal rules first.
    Returns the ids of the invoices that were deleted.
    """
    from .invoice_service import delete_invoice

    now = now or utcnow()
    customer = get_customer(customer_id)

    deleted = []
    for invoice_id in list(customer.invoice_ids or []):
        if delete_invoice(invoice_id, now=now, missing_ok=True):
            deleted.append(invoice_id)

    db.session.delete(customer)
    db.session.flush()
    return deleted


# =============================================================================
# AGGREGATE ADJUSTMENTS (used by invoice and receipt services)
# =============================================================================

def _touch(customer: Customer, now: datetime, *, transaction: bool = True) -> None:
    if transaction:
        customer.last_transaction_at = now
    customer.updated_at = now


def record_invoice_created(customer: Customer, invoice_id: str, amount_cents: int, *, now: datetime) -> None:
    customer.outstanding_cents += amount_cents
    customer.total_spent_cents += amount_cents
    # Reassign so the JSON column is flagged dirty
    customer.invoice_ids = list(customer.invoice_ids or []) + [invoice_id]
    _touch(customer, now)


def record_invoice_removed(customer: Customer, invoice_id: str, remaining_cents: int, *, now: datetime) -> None:
    customer.outstanding_cents = max(0, customer.outstanding_cents - max(0, remaining_cents))
    customer.invoice_ids = [i for i in (customer.invoice_ids or []) if i != invoice_id]
    _touch(customer, now, transaction=False)


def record_invoice_payment(customer: Customer, amount_cents: int, *, now: datetime) -> None:
    customer.outstanding_cents = max(0, customer.outstanding_cents - amount_cents)
    _touch(customer, now)


def record_receipt_created(customer: Customer, amount_cents: int, *, now: datetime) -> None:
    customer.total_spent_cents += amount_cents
    _touch(customer, now)


def record_receipt_removed(customer: Customer, amount_cents: int, *, now: datetime) -> None:
    customer.total_spent_cents = max(0, customer.total_spent_cents - amount_cents)
    _touch(customer, now, transaction=False)
