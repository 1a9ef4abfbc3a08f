"""
Tests that a failed mutation leaves no partial writes behind.

Uses a file-backed SQLite database and the real unit-of-work helper so that
commit and rollback behave as in production.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from timeledger.db import connection
from timeledger.db.repositories import (
    AuditEventRepository,
    EntrySegmentRepository,
    TimeEntryRepository,
)
from timeledger.ledger import EntryService, Identity
from timeledger.models.db import Base, User

NOW = datetime(2026, 3, 11, 12, 0, tzinfo=UTC)


@pytest.fixture
def file_sessions(tmp_path, monkeypatch):
    """Point db_session() at a throwaway SQLite file."""
    connection.use_json_for_sqlite(Base.metadata)
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False)
    monkeypatch.setattr(connection, "SessionLocal", factory)
    yield factory
    engine.dispose()


@pytest.fixture
def seeded(file_sessions):
    """A user with one committed two-hour entry."""
    user_id = uuid.uuid4()
    with connection.db_session() as session:
        session.add(User(id=user_id, display_name="Ada", is_active=True))
        session.flush()
        view = EntryService(session, clock=lambda: NOW).create_entry(
            Identity.of(user_id),
            started_at=NOW - timedelta(hours=2),
            stopped_at=NOW,
            description="Client work",
        )
    return user_id, view.id


class TestAtomicity:
    """A failure at the audit step rolls back every write of the operation."""

    def counts(self, factory, user_id, entry_id):
        with factory() as session:
            return (
                len(TimeEntryRepository(session).get_by_user(user_id)),
                len(EntrySegmentRepository(session).get_by_entry(entry_id)),
                AuditEventRepository(session).count(),
            )

    def test_split_rolls_back_when_audit_fails(self, file_sessions, seeded):
        user_id, entry_id = seeded
        before = self.counts(file_sessions, user_id, entry_id)

        with patch.object(
            AuditEventRepository, "create", side_effect=RuntimeError("audit down")
        ):
            with pytest.raises(RuntimeError):
                with connection.db_session() as session:
                    EntryService(session, clock=lambda: NOW).split_entry(
                        entry_id, Identity.of(user_id), 1800
                    )

        assert before == (1, 1, 1)
        assert self.counts(file_sessions, user_id, entry_id) == before

    def test_move_rolls_back_when_second_audit_fails(self, file_sessions, seeded):
        """The source's event was written; the new entry's fails; nothing stays."""
        user_id, entry_id = seeded
        before = self.counts(file_sessions, user_id, entry_id)
        original_create = AuditEventRepository.create
        calls = []

        def fail_second(self, **kwargs):
            calls.append(kwargs["action"])
            if len(calls) == 2:
                raise RuntimeError("audit down")
            return original_create(self, **kwargs)

        with patch.object(AuditEventRepository, "create", fail_second):
            with pytest.raises(RuntimeError):
                with connection.db_session() as session:
                    service = EntryService(session, clock=lambda: NOW)
                    segment_id = service.segments.get_by_entry(entry_id)[0].id
                    service.move_block(entry_id, Identity.of(user_id), segment_id)

        assert len(calls) == 2
        assert self.counts(file_sessions, user_id, entry_id) == before

    def test_successful_operation_commits(self, file_sessions, seeded):
        user_id, entry_id = seeded

        with connection.db_session() as session:
            EntryService(session, clock=lambda: NOW).add_adjustment(
                entry_id, Identity.of(user_id), -600, "Break"
            )

        assert self.counts(file_sessions, user_id, entry_id) == (1, 2, 2)
