"""
Database connection management for timeledger.

Provides database session management, connection handling, and transaction support.
Every ledger mutation runs inside one of these units of work: the services
only flush, and the session here commits on success or rolls back on error.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

from timeledger.config import settings
from timeledger.models.db import Base

logger = logging.getLogger(__name__)


def use_json_for_sqlite(metadata) -> None:
    """Replace JSONB columns with JSON when the schema is created on SQLite."""
    from sqlalchemy import JSON
    from sqlalchemy.dialects import postgresql

    @event.listens_for(metadata, "before_create")
    def _set_json_type(target, connection, **kw):  # pragma: no cover - compat hook
        if connection.dialect.name != "sqlite":
            return
        for table in target.tables.values():
            for column in table.columns:
                if isinstance(column.type, postgresql.JSONB):
                    column.type = JSON()


# Create engine instance (singleton pattern)
if settings.database_url.startswith("sqlite"):
    engine = create_engine(
        settings.database_url,
        echo=False,
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
    )
    use_json_for_sqlite(Base.metadata)
else:
    # Each uvicorn worker gets its own pool.
    # Total connections = workers × (pool_size + max_overflow)
    engine = create_engine(
        settings.database_url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_pre_ping=True,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Ensure tables exist for SQLite runs (in-memory databases don't persist schema)
if settings.database_url.startswith("sqlite"):
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database sessions with automatic cleanup.

    The request's mutation commits as a whole when the handler returns, or
    rolls back entirely when it raises.

    Yields:
        Session: A SQLAlchemy session

    Example (FastAPI):
        >>> @router.get("/entries")
        >>> def list_entries(db: Session = Depends(get_db)):
        >>>     return EntryAssembler(db).list_days(...)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for a unit of work.

    Commits on success and rolls back on any exception, so a ledger mutation
    is applied completely or not at all.

    Yields:
        Session: A SQLAlchemy session

    Example:
        >>> with db_session() as db:
        >>>     EntryService(db).split_entry(entry_id, identity, 1800)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """
    Initialize the database.

    This function can be used to create tables programmatically,
    but in production we use Alembic migrations instead.

    Note:
        Prefer using Alembic migrations: `alembic upgrade head`
    """
    Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with db_session() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
