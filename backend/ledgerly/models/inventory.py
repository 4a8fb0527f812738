from __future__ import annotations

from ..extensions import db
from ..constants import STOCK_IN
from ledgerly.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with an on-hand quantity.

    STATUS INVARIANT (recomputed on every write, never taken from input):
    - out-of-stock iff quantity <= 0
    - low-stock    iff 0 < quantity <= low_stock_threshold
    - in-stock     otherwise

    NAME LOOKUP: invoice items without product_id and receipt items resolve
    products by exact name; the first match wins when names collide.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_status", "status"),
    )

    id = db.Column(db.String(32), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=STOCK_IN)

    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "category": self.category,
            "supplier": self.supplier,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "quantity": self.quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only log of stock adjustments.

    Every call to the stock-adjust primitive writes one row, including
    adjustments that were clamped at zero (quantity_delta records the
    change actually applied).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(32), nullable=False, index=True)

    # add, remove, set
    movement_type = db.Column(db.String(16), nullable=False)
    quantity_requested = db.Column(db.Integer, nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity_requested": self.quantity_requested,
            "quantity_delta": self.quantity_delta,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }
