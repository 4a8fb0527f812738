# Overview: Identifier and document-number allocation.

from __future__ import annotations

import uuid

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


# Counter bumped by every committed store batch; derived views key on it
STORE_REVISION = "STORE-REVISION"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def new_entity_id() -> str:
    """Opaque identifier for a new entity (uuid4, 32 hex chars)."""
    return uuid.uuid4().hex


def _current_value(document_type: str) -> int | None:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )


def next_sequence_value(document_type: str) -> int:
    """
    Atomically allocate the next value of the counter for document_type.

    The counter row is bumped with a single UPDATE and re-read inside the
    current transaction, so two allocations can never observe the same value.
    The first allocation for a type creates its row; if another writer
    created it first, the insert is undone at its savepoint and the UPDATE
    is retried.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        return _current_value(document_type) - 1

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(document_type=document_type, next_number=2))
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        db.session.flush()
        return _current_value(document_type) - 1


def next_invoice_number(year: int, *, pad: int = 4) -> str:
    """Sequential per calendar year: INV-2026-0001, INV-2026-0002, ..."""
    seq = next_sequence_value(f"INVOICE-{year}")
    return f"INV-{year}-{seq:0{pad}d}"


def next_receipt_number(*, pad: int = 4) -> str:
    seq = next_sequence_value("RECEIPT")
    return f"RCP-{seq:0{pad}d}"


def bump_store_revision() -> int:
    return next_sequence_value(STORE_REVISION)


def current_store_revision() -> int:
    """Number of committed store batches so far, across every writer."""
    value = _current_value(STORE_REVISION)
    return (value - 1) if value else 0
