# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


DOCUMENT_BILL = "BILL"
DOCUMENT_SALE = "SALE"

PREFIXES = {
    DOCUMENT_BILL: "BILL",
    DOCUMENT_SALE: "POS",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(
    *,
    store_id: int,
    document_type: str,
    prefix: str | None = None,
    pad: int = 6,
) -> str:
    """
    Atomically allocate the next document number for a store/type.

    Runs inside the caller's transaction (flush only, no commit) so a
    rolled-back checkout also gives its number back. The UPDATE ... SET
    next_number = next_number + 1 takes the row lock that serializes
    concurrent allocations.
    """
    if not store_id:
        raise DocumentSequenceError("store_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    prefix = prefix or PREFIXES.get(document_type, document_type)

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(store_id=store_id, document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(store_id=store_id, document_type=document_type, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # Another transaction created the row first; take the update path.
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise DocumentSequenceError(f"Could not allocate {document_type} number")
            current = (
                db.session.query(DocumentSequence.next_number)
                .filter_by(store_id=store_id, document_type=document_type)
                .scalar()
            )
            next_num = current - 1

    return f"{prefix}-{store_id:03d}-{next_num:0{pad}d}"
