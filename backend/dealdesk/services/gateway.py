# Overview: Table-scoped data gateway; generic row CRUD shared by entity services.

"""
Thin table gateway over the SQLAlchemy session.

Entity services use these helpers for plain CRUD so that "row not found",
"stamp updated_at" and "commit or roll back" behave the same everywhere.
Multi-step domain operations (review requests, resends, contracts) build
their rows in one session and call ``commit_or_rollback()`` once.
"""

from __future__ import annotations

from typing import Any, Iterable

from flask import current_app
from sqlalchemy import or_, text

from ..extensions import db
from ..validation import NotFoundError
from .concurrency import run_with_retry
from dealdesk.time_utils import utcnow


def get_row(model, row_id: int, *, label: str | None = None):
    row = db.session.get(model, row_id) if row_id is not None else None
    if row is None:
        raise NotFoundError(f"{label or model.__name__} {row_id} not found")
    return row


def list_rows(
    model,
    *,
    filters: dict[str, Any] | None = None,
    search: str | None = None,
    search_fields: Iterable[str] = (),
    order_by=None,
    limit: int | None = None,
    offset: int = 0,
) -> list:
    q = db.session.query(model)
    for key, value in (filters or {}).items():
        if value is None:
            continue
        q = q.filter(getattr(model, key) == value)
    term = (search or "").strip()
    if term and search_fields:
        pattern = f"%{term}%"
        q = q.filter(or_(*[getattr(model, f).ilike(pattern) for f in search_fields]))
    if order_by is not None:
        q = q.order_by(*order_by) if isinstance(order_by, (list, tuple)) else q.order_by(order_by)
    if offset:
        q = q.offset(offset)
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def _touch(row) -> None:
    if hasattr(row, "updated_at"):
        row.updated_at = utcnow()


def insert_row(model, values: dict[str, Any], *, commit: bool = True):
    row = model(**values)
    db.session.add(row)
    if commit:
        commit_or_rollback()
    else:
        db.session.flush()
    return row


def update_row(row, values: dict[str, Any], *, commit: bool = True):
    for key, value in values.items():
        setattr(row, key, value)
    _touch(row)
    if commit:
        commit_or_rollback()
    return row


def delete_row(row, *, commit: bool = True) -> None:
    db.session.delete(row)
    if commit:
        commit_or_rollback()


def commit_or_rollback() -> None:
    """Commit the unit of work; on any failure roll everything back and re-raise."""
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def check_connection() -> bool:
    """
    Cheap round-trip used by the health endpoint: three quick attempts,
    fixed half-second spacing.
    """
    def _op():
        db.session.execute(text("SELECT 1"))
        return True

    try:
        return run_with_retry(_op, attempts=3, delay=0.5, backoff=False)
    except Exception:
        current_app.logger.exception("Database connection check failed")
        return False
