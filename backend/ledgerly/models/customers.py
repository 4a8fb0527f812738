from __future__ import annotations

from ..extensions import db
from ..constants import CUSTOMER_ACTIVE
from ledgerly.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data with denormalized receivable aggregates.

    AGGREGATES: outstanding_cents, total_spent_cents and last_transaction_at
    are maintained by the invoice and receipt services whenever a document
    referencing this customer is created, paid or deleted. Never set them
    from caller input.

    invoice_ids is a weak back-reference list (no ownership, no FK).
    Invoices reference customers by name; a customer rename does not
    re-link existing invoices.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        db.Index("ix_customers_status", "status"),
    )

    id = db.Column(db.String(32), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    company = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=CUSTOMER_ACTIVE)

    # Denormalized aggregates (maintained by the consistency rules)
    outstanding_cents = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    last_transaction_at = db.Column(db.DateTime, nullable=True)
    invoice_ids = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "address": self.address,
            "notes": self.notes,
            "status": self.status,
            "outstanding_cents": self.outstanding_cents,
            "total_spent_cents": self.total_spent_cents,
            "last_transaction_at": to_utc_z(self.last_transaction_at),
            "invoice_ids": list(self.invoice_ids or []),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
