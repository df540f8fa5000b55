# Overview: Atomic allocation of order reference numbers and invoice numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


ORDER_REFERENCE = "ORDER"
INVOICE_NUMBER = "INVOICE"
RECORD_LETTER = "RECORD_LETTER"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _bump(document_type: str, scope: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.scope == scope,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, scope=scope)
        .scalar()
    )
    return current - 1


def next_sequence_value(*, document_type: str, scope: str = "") -> int:
    """
    Atomically allocate the next number of a (document_type, scope) sequence.

    Runs inside the caller's transaction (flush only, never commits) so the
    number is released again if the caller rolls back. The UPDATE takes the
    row lock; a concurrent first insert is resolved through a savepoint.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    next_num = _bump(document_type, scope)
    if next_num is not None:
        return next_num

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(document_type=document_type, scope=scope, next_number=2))
        return 1
    except IntegrityError:
        next_num = _bump(document_type, scope)
        if next_num is None:
            raise
        return next_num


def next_order_reference() -> str:
    """ORD001, ORD002, ... (pads to 3 digits, grows beyond)."""
    return f"ORD{next_sequence_value(document_type=ORDER_REFERENCE):03d}"


def next_record_letter_index(order_id: int) -> int:
    """1, 2, 3, ... per order. A deleted record's letter is never handed out again."""
    return next_sequence_value(document_type=RECORD_LETTER, scope=str(order_id))


def next_invoice_number(year: int) -> str:
    """INV-<year>-0001, numbered per calendar year."""
    seq = next_sequence_value(document_type=INVOICE_NUMBER, scope=str(year))
    return f"INV-{year}-{seq:04d}"
