# Overview: Service-layer operations for invoice numbering; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InvoiceSequence


INVOICE_PREFIX = "INV"
INVOICE_PAD = 6


class DocumentSequenceError(Exception):
    """Raised when invoice sequence operations fail."""
    pass


def format_invoice_number(number: int, *, prefix: str = INVOICE_PREFIX, pad: int = INVOICE_PAD) -> str:
    return f"{prefix}-{number:0{pad}d}"


def ensure_invoice_sequence(shop_id: int) -> InvoiceSequence:
    """Create the shop's counter if it does not exist yet (no commit)."""
    seq = db.session.query(InvoiceSequence).filter_by(shop_id=shop_id).first()
    if seq is None:
        seq = InvoiceSequence(shop_id=shop_id, next_number=1)
        db.session.add(seq)
        db.session.flush()
    return seq


def next_invoice_number(shop_id: int) -> str:
    """
    Atomically allocate the next invoice number for a shop.

    Runs inside the caller's transaction and never commits: the increment
    is a single UPDATE, so it is serialized by the database and rolled back
    together with a failed sale. There is no timestamp fallback; failure to
    allocate aborts the sale.
    """
    if not shop_id:
        raise DocumentSequenceError("shop_id is required")

    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.shop_id == shop_id)
        .values(next_number=InvoiceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        # First sale for a shop created without a counter
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(shop_id=shop_id, next_number=2))
            return format_invoice_number(1)
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise DocumentSequenceError("Could not allocate invoice number")

    current = (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(shop_id=shop_id)
        .scalar()
    )
    return format_invoice_number(current - 1)
