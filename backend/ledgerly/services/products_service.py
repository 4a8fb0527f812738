# backend/ledgerly/services/products_service.py
"""
Products Service

Product CRUD. Stock status is a pure function of quantity and threshold and
is recomputed on every write; it is never accepted from the caller.
Quantity changes outside of create/update go through inventory_service.
"""
from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Product
from ..constants import STOCK_IN, STOCK_LOW, STOCK_OUT
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    NotFoundError,
)
from .document_service import new_entity_id
from ledgerly.time_utils import utcnow

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "sku",
        "description",
        "category",
        "supplier",
        "barcode",
        "price_cents",
        "cost_price_cents",
        "quantity",
        "low_stock_threshold",
    },
    required_on_create={"name"},
)


def compute_stock_status(quantity: int, low_stock_threshold: int) -> str:
    if quantity <= 0:
        return STOCK_OUT
    if quantity <= low_stock_threshold:
        return STOCK_LOW
    return STOCK_IN


def refresh_stock_status(product: Product, now: datetime) -> None:
    """Recompute status from quantity and re-stamp updated_at."""
    product.status = compute_stock_status(product.quantity, product.low_stock_threshold)
    product.updated_at = now


def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def find_product_by_name(name: str | None) -> Product | None:
    """Exact name match; the oldest product wins when several share a name."""
    if not name:
        return None
    return (
        db.session.query(Product)
        .filter(Product.name == name)
        .order_by(Product.created_at.asc(), Product.id.asc())
        .first()
    )


def list_products(*, status: str | None = None) -> list[Product]:
    query = db.session.query(Product)
    if status:
        query = query.filter(Product.status == status)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(payload: dict, *, now: datetime | None = None) -> Product:
    """
    Create a product from a payload.

    Raises:
        ValidationError: On missing name or out-of-range numbers
    """
    now = now or utcnow()
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = Product(
        id=new_entity_id(),
        price_cents=0,
        cost_price_cents=0,
        quantity=0,
        low_stock_threshold=0,
        created_at=now,
    )
    for key, value in patch.items():
        if value is not None:
            setattr(product, key, value)
    refresh_stock_status(product, now)

    db.session.add(product)
    db.session.flush()
    return product


def update_product(product_id: str, payload: dict, *, now: datetime | None = None) -> Product:
    """
    Merge writable fields into a product. Status is always recomputed.

    Raises:
        NotFoundError: If the product does not exist
        ValidationError: On invalid fields
    """
    now = now or utcnow()
    product = get_product(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    for key, value in patch.items():
        setattr(product, key, value)
    refresh_stock_status(product, now)

    db.session.flush()
    return product


def delete_product(product_id: str) -> None:
    """Invoice and receipt lines keep their copies of the product name."""
    product = get_product(product_id)
    db.session.delete(product)
    db.session.flush()
