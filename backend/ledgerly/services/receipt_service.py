# Overview: Service-layer operations for receipts; applies stock and customer-spend side effects.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Receipt, ReceiptItem
from ..constants import RECEIPT_COMPLETED, WALK_IN_CUSTOMER
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    validate_line_items,
    enforce_rules_receipt,
    NotFoundError,
    ValidationError,
)
from .document_service import new_entity_id, next_receipt_number
from .inventory_service import remove_stock_for_receipt_items, restore_stock_for_receipt_items
from . import customer_service
from ledgerly.time_utils import utcnow

RECEIPT_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "customer_email",
        "customer_phone",
        "subtotal_cents",
        "tax_cents",
        "discount_cents",
        "amount_cents",
        "payment_method",
        "status",
        "notes",
    },
    required_on_create=set(),
)

# Only status and free-text fields change after a receipt is issued
RECEIPT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"status", "notes", "customer_email", "customer_phone"},
)


def normalize_payment_method(method: str | None) -> str:
    """Map free-form tender labels ("Credit Card", "bank transfer") onto the four methods."""
    value = (method or "").lower()
    if "card" in value:
        return "card"
    if "transfer" in value or "bank" in value:
        return "transfer"
    if "mobile" in value or "wallet" in value:
        return "mobile"
    return "cash"


def get_receipt(receipt_id: str) -> Receipt:
    receipt = db.session.get(Receipt, receipt_id)
    if receipt is None:
        raise NotFoundError(f"Receipt {receipt_id} not found")
    return receipt


def list_receipts(*, status: str | None = None) -> list[Receipt]:
    query = db.session.query(Receipt)
    if status:
        query = query.filter(Receipt.status == status)
    return query.order_by(Receipt.created_at.desc(), Receipt.number.desc()).all()


def _build_items(raw_items) -> list[ReceiptItem]:
    cleaned = validate_line_items(raw_items, name_key="name", price_key="price_cents")
    items = []
    for position, raw in enumerate(cleaned):
        if not raw["name"]:
            raise ValidationError(f"item {position + 1} name is required")
        items.append(ReceiptItem(
            position=position,
            name=raw["name"],
            quantity=raw["quantity"],
            price_cents=raw.get("price_cents", 0),
        ))
    return items


def create_receipt(payload: dict, *, now: datetime | None = None) -> Receipt:
    """
    Issue a receipt.

    Totals default from the lines: subtotal = sum(price * qty) and
    amount = subtotal + tax - discount (floored at 0). Item quantities are
    taken out of stock by product name; a named, existing customer gets the
    amount added to total_spent.

    Raises:
        ValidationError: On invalid fields or items
    """
    now = now or utcnow()
    payload = dict(payload or {})
    raw_items = payload.pop("items", None)
    if "payment_method" in payload:
        payload["payment_method"] = normalize_payment_method(payload["payment_method"])

    patch = validate_payload(model=Receipt, payload=payload, policy=RECEIPT_POLICY, partial=False)
    enforce_rules_receipt(patch)
    items = _build_items(raw_items)

    receipt = Receipt(
        id=new_entity_id(),
        number=next_receipt_number(),
        customer_name=WALK_IN_CUSTOMER,
        status=RECEIPT_COMPLETED,
        payment_method="cash",
        tax_cents=0,
        discount_cents=0,
        created_at=now,
        updated_at=now,
    )
    for key, value in patch.items():
        if value is not None and value != "":
            setattr(receipt, key, value)

    if patch.get("subtotal_cents") is None:
        receipt.subtotal_cents = sum(item.price_cents * item.quantity for item in items)
    if patch.get("amount_cents") is None:
        receipt.amount_cents = max(0, receipt.subtotal_cents + receipt.tax_cents - receipt.discount_cents)
    receipt.items = items

    db.session.add(receipt)
    db.session.flush()

    remove_stock_for_receipt_items(receipt.items, now=now, reason=f"Receipt {receipt.number}")

    customer = customer_service.find_customer_by_name(receipt.customer_name)
    if customer is not None:
        customer_service.record_receipt_created(customer, receipt.amount_cents, now=now)

    db.session.flush()
    return receipt


def update_receipt(receipt_id: str, payload: dict, *, now: datetime | None = None) -> Receipt:
    """
    Change status (e.g. refund) or contact/notes fields.

    Raises:
        NotFoundError: If the receipt does not exist
        ValidationError: On fields other than status, notes and contact details
    """
    now = now or utcnow()
    receipt = get_receipt(receipt_id)
    patch = validate_payload(model=Receipt, payload=payload, policy=RECEIPT_UPDATE_POLICY, partial=True)
    enforce_rules_receipt(patch)

    for key, value in patch.items():
        setattr(receipt, key, value)
    receipt.updated_at = now

    db.session.flush()
    return receipt


def delete_receipt(receipt_id: str, *, now: datetime | None = None) -> None:
    """Exact inverse of create: stock comes back, customer spend goes down (floored at 0)."""
    now = now or utcnow()
    receipt = get_receipt(receipt_id)

    restore_stock_for_receipt_items(receipt.items, now=now, reason=f"Receipt {receipt.number} deleted")

    customer = customer_service.find_customer_by_name(receipt.customer_name)
    if customer is not None:
        customer_service.record_receipt_removed(customer, receipt.amount_cents, now=now)

    db.session.delete(receipt)
    db.session.flush()
