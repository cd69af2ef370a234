# Overview: Service-layer helpers for concurrency; row locks and guarded commits.

from __future__ import annotations

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Stock correctness does not depend on it; see stock_ledger.decrement.
    """
    return query.with_for_update()


def commit_or_rollback():
    """
    Commit the current unit of work, rolling back on any failure.

    There is deliberately no retry loop: a failed checkout or adjustment is
    terminal for that attempt and the caller decides whether to resubmit.
    """
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
