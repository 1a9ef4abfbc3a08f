"""
Pytest configuration and fixtures for timeledger tests.

This module provides shared fixtures for testing database models, repositories,
the ledger services and the API.
"""

import os

# The engine is created at import time; point it at SQLite before any import.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FILE_ENABLED", "false")

import uuid
from datetime import UTC, datetime, timedelta
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from timeledger.db.connection import use_json_for_sqlite
from timeledger.ledger import EntryService, Identity, TimerService
from timeledger.models.db import Base, Client, Label, Project, User

# Wednesday
BASE_TIME = datetime(2026, 3, 11, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """
    Deterministic clock for services.

    Every call advances by a millisecond so audit events never tie on
    created_at; durations are rounded to whole seconds and don't notice.
    """

    def __init__(self, start: datetime = BASE_TIME, step=timedelta(milliseconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    use_json_for_sqlite(Base.metadata)

    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={
            "check_same_thread": False
        },  # Allow cross-thread access for TestClient
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test gets a fresh session with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection)()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def clock() -> FakeClock:
    """Service clock starting at BASE_TIME."""
    return FakeClock()


@pytest.fixture
def entry_service(db_session: Session, clock: FakeClock) -> EntryService:
    """EntryService on the test session and clock."""
    return EntryService(db_session, clock=clock)


@pytest.fixture
def timer_service(db_session: Session, clock: FakeClock) -> TimerService:
    """TimerService on the test session and clock."""
    return TimerService(db_session, clock=clock)


@pytest.fixture
def api_client(db_session: Session):
    """Create a test client for FastAPI with database dependency override."""
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from timeledger.api.app import app
    from timeledger.db.connection import get_db

    # Errors skip the commit; the test transaction is rolled back at teardown
    def override_get_db():
        yield db_session
        db_session.commit()

    app.dependency_overrides[get_db] = override_get_db

    # Disable lifespan startup checks for testing
    with patch("timeledger.api.app.run_all_startup_checks"):
        client = TestClient(app)
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """Create a sample user for testing."""
    user = User(
        id=uuid.uuid4(),
        display_name="Ada Lovelace",
        email="ada@example.com",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session: Session) -> User:
    """A second user, used for ownership and impersonation tests."""
    user = User(
        id=uuid.uuid4(),
        display_name="Grace Hopper",
        email="grace@example.com",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def identity(sample_user: User) -> Identity:
    """Sample user acting as themselves."""
    return Identity.of(sample_user.id)


@pytest.fixture
def auth_headers(sample_user: User) -> dict[str, str]:
    """Request headers identifying the sample user."""
    return {"X-User-Id": str(sample_user.id)}


@pytest.fixture
def sample_client(db_session: Session) -> Client:
    """Create a sample client for testing."""
    client = Client(id=uuid.uuid4(), name="Acme Corp", is_active=True)
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


@pytest.fixture
def sample_project(db_session: Session, sample_client: Client) -> Project:
    """Create a sample project for testing."""
    project = Project(
        id=uuid.uuid4(),
        client_id=sample_client.id,
        name="Website Redesign",
        color="#FF8800",
        is_active=True,
    )
    db_session.add(project)
    db_session.commit()
    db_session.refresh(project)
    return project


@pytest.fixture
def other_project(db_session: Session, sample_client: Client) -> Project:
    """A second project for reassignment tests."""
    project = Project(
        id=uuid.uuid4(),
        client_id=sample_client.id,
        name="Billing Portal",
        is_active=True,
    )
    db_session.add(project)
    db_session.commit()
    db_session.refresh(project)
    return project


@pytest.fixture
def sample_labels(db_session: Session) -> list[Label]:
    """Create two labels for testing."""
    labels = [
        Label(id=uuid.uuid4(), name="billable", color="#00AA00"),
        Label(id=uuid.uuid4(), name="meeting", color="#0000AA"),
    ]
    db_session.add_all(labels)
    db_session.commit()
    for label in labels:
        db_session.refresh(label)
    return labels


@pytest.fixture
def manual_entry(entry_service: EntryService, identity: Identity):
    """A one-hour manual entry ending at BASE_TIME."""
    return entry_service.create_entry(
        identity,
        started_at=BASE_TIME - timedelta(hours=1),
        stopped_at=BASE_TIME,
        description="Write report",
    )
