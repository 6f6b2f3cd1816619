"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection
- Row locking helpers
- Conditional (compare-and-set) version writes used by reservation commits
"""

import logging
from typing import Optional, TypeVar, Type
from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

T = TypeVar('T')

_LOCK_ERROR_MARKERS = (
    "database is locked",
    "could not obtain lock",
    "could not serialize access",
    "deadlock detected",
    "lock timeout",
)


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        dialect = db.bind.dialect.name
        return dialect == 'postgresql'
    except AttributeError:
        return False


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False
) -> Optional[T]:
    """
    Acquire a row-level lock on a database record.

    Locks are only taken on PostgreSQL; SQLite serializes writers at the
    database level, so there the read is a plain SELECT.

    Args:
        db: Database session
        model: SQLAlchemy model class
        filter_condition: Filter to find the row
        nowait: If True, raise immediately when the row is locked (PostgreSQL only)

    Returns:
        The model instance, or None if not found

    Example:
        product = acquire_row_lock(db, Product, Product.id == product_id)
    """
    query = db.query(model).filter(filter_condition)

    if is_postgres(db):
        query = query.with_for_update(nowait=nowait)

    return query.first()


def conditional_version_bump(
    db: Session,
    model: Type[T],
    record_id: str,
    expected_version: int
) -> bool:
    """
    Increment ``model.version`` only if it still equals ``expected_version``.

    Returns True when exactly one row was updated. False means another
    transaction committed a change to the row after it was read.
    """
    stmt = (
        update(model)
        .where(model.id == record_id, model.version == expected_version)
        .values(version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def is_lock_error(exc: DBAPIError) -> bool:
    """True for lock contention errors that are worth retrying."""
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _LOCK_ERROR_MARKERS)
