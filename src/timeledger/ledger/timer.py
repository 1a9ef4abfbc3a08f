"""
Timer coordination.

A user has at most one running segment across all of their entries. Starting
or resuming a timer stops the current one first, in the same transaction.
"""

import logging
import uuid
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from timeledger.db.repositories import (
    EntryLabelRepository,
    EntrySegmentRepository,
    TimeEntryRepository,
    UserRepository,
)
from timeledger.exceptions import NotFoundError
from timeledger.ledger import durations
from timeledger.ledger.assembly import EntryAssembler
from timeledger.ledger.audit import AuditTrail, initial
from timeledger.ledger.entries import EntryService
from timeledger.ledger.identity import Identity
from timeledger.models.db import AuditAction, SegmentType, TimeEntry
from timeledger.models.views import TimerState
from timeledger.utils.clock import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)


class TimerService:
    """Start, stop and resume the user's single running timer."""

    def __init__(self, session: Session, clock: Clock = utc_now):
        self.session = session
        self.clock = clock
        self.entries = TimeEntryRepository(session)
        self.segments = EntrySegmentRepository(session)
        self.users = UserRepository(session)
        self.audit = AuditTrail(session, clock)
        self.assembler = EntryAssembler(session, clock)
        self.entry_service = EntryService(session, clock)

    def _state(self, entry_id: Optional[uuid.UUID]) -> TimerState:
        self.session.flush()
        if entry_id is None:
            return TimerState(running=False, entry=None)
        view = self.assembler.build_view(entry_id)
        return TimerState(running=bool(view and view.is_running), entry=view)

    def _stop_running(
        self, identity: Identity, now: datetime, source: str
    ) -> Optional[TimeEntry]:
        """Freeze the user's running segment, if any, and audit it."""
        running = self.segments.get_running_for_user(identity.user_id)
        if running is None:
            return None
        entry = self.entries.get(running.entry_id)
        duration = durations.freeze(running, now)
        self.session.flush()
        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.TIMER_STOPPED,
            changes={
                "stopped_at": {"old": None, "new": as_utc(now)},
                "duration_seconds": {"old": None, "new": duration},
            },
            metadata={"source": source, "segment_id": running.id},
        )
        logger.info(f"Stopped timer on entry {entry.id} after {duration}s")
        return entry

    def current(self, user_id: uuid.UUID) -> TimerState:
        """The user's running timer, if any."""
        running = self.segments.get_running_for_user(user_id)
        return self._state(running.entry_id if running else None)

    def start(
        self,
        identity: Identity,
        description: str = "",
        project_id: Optional[uuid.UUID] = None,
        label_ids: Iterable[uuid.UUID] = (),
        source: str = "api",
    ) -> TimerState:
        """
        Start a timer on a new entry, stopping any running timer first.

        Raises:
            InvalidInputError: Unknown project or label
        """
        project_name = self.entry_service.require_project(project_id)
        labels = self.entry_service.require_labels(label_ids)

        self.users.lock(identity.user_id)
        now = self.clock()
        self._stop_running(identity, now, source)

        entry = self.entries.create(
            user_id=identity.user_id,
            description=description or "",
            project_id=project_id,
            is_active=True,
            created_at=now,
        )
        segment = self.segments.create(
            entry_id=entry.id,
            type=SegmentType.CLOCKED,
            started_at=as_utc(now),
            created_at=now,
        )
        if labels:
            EntryLabelRepository(self.session).attach(entry.id, labels)
        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.TIMER_STARTED,
            changes=initial(
                {
                    "description": entry.description,
                    "project": project_name,
                    "project_id": project_id,
                    "started_at": now,
                }
            ),
            metadata={"source": source, "segment_id": segment.id},
        )
        logger.info(f"Started timer on new entry {entry.id}")
        return self._state(entry.id)

    def stop(self, identity: Identity, source: str = "api") -> TimerState:
        """
        Stop the running timer.

        Raises:
            NotFoundError: If no timer is running
        """
        self.users.lock(identity.user_id)
        entry = self._stop_running(identity, self.clock(), source)
        if entry is None:
            raise NotFoundError("Running timer")
        return self._state(entry.id)

    def resume(
        self, entry_id: uuid.UUID, identity: Identity, source: str = "api"
    ) -> TimerState:
        """
        Continue tracking on an existing entry with a new running segment.

        Any other running timer is stopped first. Resuming the entry that is
        already running is a no-op.

        Raises:
            NotFoundError: Missing or soft-deleted entry
            ForbiddenError: Entry owned by someone else
        """
        self.users.lock(identity.user_id)
        entry = self.entry_service.load_owned(entry_id, identity)
        running = self.segments.get_running_for_user(identity.user_id)
        if running is not None and running.entry_id == entry.id:
            return self._state(entry.id)

        now = self.clock()
        self._stop_running(identity, now, source)
        segment = self.segments.create(
            entry_id=entry.id,
            type=SegmentType.CLOCKED,
            started_at=as_utc(now),
            created_at=now,
        )
        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.TIMER_RESUMED,
            changes={"started_at": {"new": as_utc(now)}},
            metadata={"source": source, "segment_id": segment.id},
        )
        logger.info(f"Resumed timer on entry {entry.id}")
        return self._state(entry.id)
