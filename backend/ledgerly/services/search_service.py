# Overview: Case-insensitive substring search across the four entity collections.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Product, Invoice, Receipt
from ..validation import ValidationError

SEARCH_TYPES = ("all", "invoices", "customers", "products", "receipts")

# Fields matched per collection
SEARCH_FIELDS = {
    "invoices": (Invoice, ("number", "customer_name", "status")),
    "customers": (Customer, ("name", "email", "phone", "company")),
    "products": (Product, ("name", "sku", "description", "category")),
    "receipts": (Receipt, ("number", "customer_name", "payment_method")),
}


def _matches(entity, fields, term: str) -> bool:
    for field in fields:
        value = getattr(entity, field, None)
        if value and term in str(value).lower():
            return True
    return False


def _search_collection(collection: str, term: str) -> list:
    model, fields = SEARCH_FIELDS[collection]
    order = model.created_at.desc()
    return [e for e in db.session.query(model).order_by(order).all() if _matches(e, fields, term)]


def search_data(query: str, search_type: str = "all"):
    """
    Search one collection (returns a list) or all of them (returns a dict
    keyed by collection name). A blank query matches nothing.

    Raises:
        ValidationError: On an unknown search_type
    """
    if search_type not in SEARCH_TYPES:
        raise ValidationError(f"search type must be one of {', '.join(SEARCH_TYPES)}")

    term = (query or "").strip().lower()

    if search_type != "all":
        return _search_collection(search_type, term) if term else []

    return {
        collection: (_search_collection(collection, term) if term else [])
        for collection in SEARCH_FIELDS
    }
