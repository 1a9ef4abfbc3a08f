"""
Startup dependency checks for the timeledger API.

Validates the database before the application starts serving requests and
fails fast with an actionable message when something is missing.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from timeledger.config import settings
from timeledger.db.connection import SessionLocal, engine

logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\nSTARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\nHint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def _is_sqlite() -> bool:
    return settings.database_url.startswith("sqlite")


def check_database_connection() -> None:
    """
    Verify the database is accessible and responsive.

    Raises:
        StartupCheckError: If the connection fails
    """
    try:
        with SessionLocal() as session:
            result = session.execute(text("SELECT 1")).scalar()
            if result != 1:
                raise StartupCheckError(
                    "Database query returned unexpected result",
                    "Database may be corrupted or misconfigured",
                )
    except StartupCheckError:
        raise
    except Exception as e:
        error_str = str(e).lower()
        if "could not connect" in error_str or "connection refused" in error_str:
            hint = (
                "PostgreSQL is not running.\n"
                f"  - Current host: {settings.postgres_host}:{settings.postgres_port}"
            )
        elif "authentication failed" in error_str or "password" in error_str:
            hint = (
                "Database authentication failed.\n"
                "  - Check credentials in .env file\n"
                f"  - Current user: {settings.postgres_user}"
            )
        elif "database" in error_str and "does not exist" in error_str:
            hint = (
                f"Database '{settings.postgres_db}' does not exist.\n"
                f"  - Create it: createdb {settings.postgres_db}\n"
                "  - Then run migrations: alembic upgrade head"
            )
        else:
            hint = f"Check your database configuration in .env\nError: {str(e)}"

        raise StartupCheckError(
            f"Cannot connect to database\n"
            f"Host: {settings.postgres_host}:{settings.postgres_port}\n"
            f"Database: {settings.postgres_db}",
            hint,
        ) from e


def check_database_migrations() -> None:
    """
    Verify Alembic migrations are at head.

    Skipped for SQLite, where the schema is created from the models.

    Raises:
        StartupCheckError: If the database is uninitialized or behind head
    """
    if _is_sqlite():
        logger.info("Skipping migration check for SQLite database")
        return

    try:
        if not ALEMBIC_INI.exists():
            raise FileNotFoundError(str(ALEMBIC_INI))
        alembic_cfg = AlembicConfig(str(ALEMBIC_INI))
        script = ScriptDirectory.from_config(alembic_cfg)
        head_revision = script.get_current_head()

        with engine.connect() as connection:
            context = MigrationContext.configure(connection)
            current_revision = context.get_current_revision()

        if current_revision is None:
            raise StartupCheckError(
                "Database has no migration version\nDatabase appears uninitialized",
                "Run migrations: alembic upgrade head",
            )

        if current_revision != head_revision:
            raise StartupCheckError(
                f"Database migrations are out of date\n"
                f"Current revision: {current_revision}\n"
                f"Expected revision: {head_revision}",
                "Run: alembic upgrade head",
            )

    except StartupCheckError:
        raise
    except FileNotFoundError:
        raise StartupCheckError(
            "Alembic configuration not found",
            "Ensure alembic.ini exists in the project root",
        )
    except Exception as e:
        raise StartupCheckError(
            f"Failed to check migration status: {str(e)}",
            "Verify Alembic is properly configured",
        ) from e


def run_all_startup_checks() -> None:
    """
    Run every startup check in order, exiting the process on the first failure.

    Raises:
        SystemExit: If a check fails
    """
    checks = [
        ("Database Connection", check_database_connection),
        ("Database Migrations", check_database_migrations),
    ]

    started = time.time()
    for check_name, check_func in checks:
        check_start = time.time()
        try:
            check_func()
        except StartupCheckError as e:
            duration = (time.time() - check_start) * 1000
            logger.error(f"{check_name}: FAIL ({duration:.1f}ms){e}")
            sys.exit(1)
        duration = (time.time() - check_start) * 1000
        logger.info(f"{check_name}: PASS ({duration:.1f}ms)")

    logger.info(
        f"All startup checks passed ({(time.time() - started) * 1000:.1f}ms)"
    )
