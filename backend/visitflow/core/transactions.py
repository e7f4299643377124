"""
Database transaction management utilities.

Provides the unit-of-work context manager used by cascades, webhook
handlers and the token exchange, plus a tenacity policy for retrying
transient write conflicts.

Usage:
    with transaction(db):
        # Multiple database operations
        # All succeed or all roll back
        db.add(visit)
        db.add(action)
"""

import logging
from contextlib import contextmanager
from typing import Generator, Iterator, List, Sequence, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Context manager for database transactions with automatic rollback.

    Commits on success, rolls back and re-raises on error.

    Args:
        db: SQLAlchemy database session

    Yields:
        The same database session
    """
    try:
        yield db
        db.commit()
        logger.debug("Transaction committed")
    except Exception as e:
        db.rollback()
        logger.error(f"Transaction rolled back due to error: {type(e).__name__}: {e}")
        raise


def safe_rollback(db: Session) -> None:
    """
    Roll back a session, logging instead of raising on failure.

    Used on error paths where a second exception would mask the first.
    """
    try:
        db.rollback()
    except Exception as e:
        logger.error(f"Rollback failed: {e}")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of ``items`` no longer than ``size``."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


# Transient conflicts (SQLite "database is locked", PostgreSQL serialization
# failures surfaced as OperationalError) are retried a few times.
retry_on_conflict = retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
