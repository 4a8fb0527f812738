from __future__ import annotations

from ..extensions import db
from ..constants import INVOICE_DRAFT, RECEIPT_COMPLETED
from ledgerly.time_utils import to_utc_z


class Invoice(db.Model):
    """
    Invoice document.

    LIFECYCLE: draft -> sent/pending -> paid, with overdue set by the
    periodic sweep and cancelled set explicitly.

    inventory_adjusted guards the send transition: stock is reduced the
    first time an invoice enters "sent" and never again.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_invoices_number"),
        db.Index("ix_invoices_status", "status"),
        db.Index("ix_invoices_customer_name", "customer_name"),
    )

    id = db.Column(db.String(32), primary_key=True)

    # Document number (e.g., "INV-2026-0001")
    number = db.Column(db.String(32), nullable=False)

    # Weak link by display name; customer_id caches the match made at creation
    customer_name = db.Column(db.String(255), nullable=False)
    customer_id = db.Column(db.String(32), nullable=True, index=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    issue_date = db.Column(db.DateTime, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # draft, sent, pending, paid, overdue, cancelled
    status = db.Column(db.String(16), nullable=False, default=INVOICE_DRAFT)
    notes = db.Column(db.Text, nullable=True)
    inventory_adjusted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)

    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )

    @property
    def balance_cents(self) -> int:
        return self.amount_cents - self.paid_amount_cents

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "customer_name": self.customer_name,
            "customer_id": self.customer_id,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "issue_date": to_utc_z(self.issue_date),
            "due_date": to_utc_z(self.due_date),
            "amount_cents": self.amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "balance_cents": self.balance_cents,
            "status": self.status,
            "notes": self.notes,
            "inventory_adjusted": self.inventory_adjusted,
            "items": [item.to_dict() for item in self.items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.String(32), db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # Optional hard link; description doubles as the name used for lookup
    product_id = db.Column(db.String(32), nullable=True)
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.quantity * self.unit_price_cents,
        }


class Receipt(db.Model):
    """
    Point-of-sale receipt.

    customer_name is optional; the walk-in sentinel means no linked customer.
    Creating a receipt takes stock out and adds to the customer's spend;
    deleting it reverses both.
    """
    __tablename__ = "receipts"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_receipts_number"),
        db.Index("ix_receipts_status", "status"),
    )

    id = db.Column(db.String(32), primary_key=True)

    # Document number (e.g., "RCP-0001")
    number = db.Column(db.String(32), nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # cash, card, transfer, mobile
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    # completed, refunded, pending
    status = db.Column(db.String(16), nullable=False, default=RECEIPT_COMPLETED)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)

    items = db.relationship(
        "ReceiptItem",
        backref="receipt",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ReceiptItem.position",
    )

    def __repr__(self) -> str:
        return f"<Receipt id={self.id} number={self.number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "items": [item.to_dict() for item in self.items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ReceiptItem(db.Model):
    __tablename__ = "receipt_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    receipt_id = db.Column(db.String(32), db.ForeignKey("receipts.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
        }
