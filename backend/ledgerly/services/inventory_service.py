# Overview: Stock-adjust primitive and the document-driven stock movements built on it.

# backend/ledgerly/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime

from ..extensions import db
from ..models import Product, StockMovement
from ..constants import ADJUST_ADD, ADJUST_REMOVE, ADJUST_SET, ADJUST_TYPES
from ..validation import ValidationError
from .products_service import find_product_by_name, refresh_stock_status
from ledgerly.time_utils import utcnow
"""
Ledgerly Stock Invariants (authoritative)

- Product.quantity is the on-hand quantity; it is never negative after a
  REMOVE (removals clamp at zero).
- Product.status is recomputed and updated_at re-stamped after every change.
- Every primitive call appends a StockMovement row in the same transaction.

Invoice send (first transition only):
- Items resolve by product_id, else by exact name on description.
- Each resolved product gives min(available, requested).
- Unresolved products and short stock are reported as shortages; partial
  reductions are kept (no rollback).

Receipts:
- Create removes item quantities by exact product name (no shortage report).
- Delete adds them back.
"""


@dataclass(frozen=True)
class StockShortage:
    """Requested quantity that could not be taken from stock."""
    name: str
    requested: int
    available: int

    def to_dict(self) -> dict:
        return asdict(self)


def apply_stock_change(
    product: Product,
    quantity: int,
    adjust_type: str,
    *,
    now: datetime,
    reason: str | None = None,
) -> int:
    """
    Core primitive on an already-loaded product. Returns the applied delta.

    - add: quantity += n
    - remove: quantity -= min(n, quantity)
    - set: quantity = n
    """
    if adjust_type not in ADJUST_TYPES:
        raise ValidationError(f"Invalid adjustment type: {adjust_type}. Must be one of {sorted(ADJUST_TYPES)}")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")

    before = product.quantity
    if adjust_type == ADJUST_ADD:
        after = before + quantity
    elif adjust_type == ADJUST_REMOVE:
        after = max(0, before - quantity)
    else:
        after = quantity

    product.quantity = after
    refresh_stock_status(product, now)

    db.session.add(StockMovement(
        product_id=product.id,
        movement_type=adjust_type,
        quantity_requested=quantity,
        quantity_delta=after - before,
        quantity_after=after,
        reason=reason,
        occurred_at=now,
    ))
    return after - before


def adjust_stock(
    product_id: str,
    quantity: int,
    adjust_type: str,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> Product:
    """
    Adjust stock for a product by id.

    Raises:
        ValidationError: If the product is unknown, the type is invalid,
            or quantity is negative
    """
    now = now or utcnow()
    product = db.session.get(Product, product_id)
    if product is None:
        raise ValidationError(f"Cannot adjust stock for unknown product {product_id}")

    apply_stock_change(product, quantity, adjust_type, now=now, reason=reason)
    db.session.flush()
    return product


def _resolve_invoice_item_product(item) -> Product | None:
    if item.product_id:
        product = db.session.get(Product, item.product_id)
        if product is not None:
            return product
    return find_product_by_name(item.description)


def reduce_stock_for_invoice_items(items, *, now: datetime, reason: str | None = None) -> list[StockShortage]:
    """
    Take invoice quantities out of stock, collecting every shortage.

    Reductions that can be applied are applied even when other lines fall
    short; the caller reports the shortages together.
    """
    shortages: list[StockShortage] = []
    for item in items:
        product = _resolve_invoice_item_product(item)
        if product is None:
            shortages.append(StockShortage(name=item.description, requested=item.quantity, available=0))
            continue

        available = max(0, product.quantity)
        if available < item.quantity:
            shortages.append(StockShortage(name=product.name, requested=item.quantity, available=available))

        take = min(available, item.quantity)
        apply_stock_change(product, take, ADJUST_REMOVE, now=now, reason=reason)

    db.session.flush()
    return shortages


def remove_stock_for_receipt_items(items, *, now: datetime, reason: str | None = None) -> None:
    for item in items:
        product = find_product_by_name(item.name)
        if product is None:
            continue
        apply_stock_change(product, item.quantity, ADJUST_REMOVE, now=now, reason=reason)
    db.session.flush()


def restore_stock_for_receipt_items(items, *, now: datetime, reason: str | None = None) -> None:
    for item in items:
        product = find_product_by_name(item.name)
        if product is None:
            continue
        apply_stock_change(product, item.quantity, ADJUST_ADD, now=now, reason=reason)
    db.session.flush()


def list_stock_movements(product_id: str) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.occurred_at.asc(), StockMovement.id.asc())
        .all()
    )
