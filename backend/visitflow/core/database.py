"""
Database connection and session management.

Provides SQLAlchemy engine, session factory, the shared UTC datetime column
type, and dependency injection for database sessions in FastAPI endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional

from sqlalchemy import DateTime, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool
from sqlalchemy.types import TypeDecorator

from .config import settings


# =============================================================================
# SQLAlchemy Base
# =============================================================================

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime column.

    SQLite drops tzinfo on the way back; values are re-tagged as UTC on load
    and converted to UTC on the way in so comparisons never mix naive and
    aware datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_millis(value: Optional[datetime]) -> Optional[int]:
    """Epoch milliseconds of an aware datetime."""
    if value is None:
        return None
    return int(value.timestamp() * 1000)


# =============================================================================
# Engine Configuration
# =============================================================================

def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine with pool settings suited to the backend.

    PostgreSQL gets a sized QueuePool with health checks; SQLite (local
    development and tests) keeps the driver defaults.

    Args:
        url: SQLAlchemy database URL
        echo: Log SQL statements

    Returns:
        Configured Engine
    """
    kwargs: Dict[str, Any] = {"echo": echo, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            poolclass=QueuePool,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=settings.db_pool_recycle,
            pool_timeout=settings.db_pool_timeout,
        )
    new_engine = create_engine(url, **kwargs)
    event.listen(new_engine, "connect", set_connection_settings)
    return new_engine


def set_connection_settings(dbapi_connection, connection_record):
    """
    Configure connection settings when a new connection is created.

    PostgreSQL sessions run in UTC with a statement timeout; SQLite gets
    a busy timeout so concurrent writers wait instead of failing at once.
    """
    module = type(dbapi_connection).__module__
    cursor = dbapi_connection.cursor()
    if module.startswith("sqlite3"):
        cursor.execute("PRAGMA busy_timeout = 5000")
    else:
        cursor.execute("SET timezone='UTC'")
        cursor.execute("SET statement_timeout = '30s'")
    cursor.close()


engine = build_engine(settings.database_url, echo=settings.debug)


# =============================================================================
# Session Factory
# =============================================================================

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


# =============================================================================
# Dependency Injection
# =============================================================================

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database session injection.

    Creates a new session for each request and ensures proper cleanup.

    Yields:
        SQLAlchemy Session instance
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Database Utilities
# =============================================================================

def init_db() -> None:
    """
    Initialize database tables.

    Creates all tables defined in models. Intended for development and
    tests; production schemas are managed by migrations.
    """
    from .. import models  # noqa: F401  registers mappers

    Base.metadata.create_all(bind=engine)
