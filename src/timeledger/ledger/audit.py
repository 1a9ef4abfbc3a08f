"""
Audit trail for entry mutations.

Every mutating ledger operation records exactly one event per entry it
touches, inside the same transaction. Recording is never best-effort: if the
insert fails the exception propagates and the unit of work rolls back, since
an un-audited mutation is worse than a failed one.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from timeledger.db.repositories import (
    AuditEventRepository,
    TimeEntryRepository,
    UserRepository,
)
from timeledger.exceptions import ForbiddenError, NotFoundError
from timeledger.models.db import AuditAction, EntryAuditEvent, TimeEntry
from timeledger.utils.clock import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)

Changes = Dict[str, Dict[str, Any]]


def _jsonable(value: Any) -> Any:
    """Make a field value safe for the JSON changes column."""
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    return value


def diff(before: Dict[str, Any], after: Dict[str, Any]) -> Changes:
    """
    Field-level changes between two snapshots.

    Only fields present in after and whose value differs from before are kept.
    """
    changes: Changes = {}
    for field, new_value in after.items():
        old_value = before.get(field)
        if _jsonable(old_value) != _jsonable(new_value):
            changes[field] = {"old": _jsonable(old_value), "new": _jsonable(new_value)}
    return changes


def initial(values: Dict[str, Any]) -> Changes:
    """Changes for a newly created record: every non-null field as new."""
    return {
        field: {"new": _jsonable(value)}
        for field, value in values.items()
        if value is not None
    }


class AuditTrail:
    """Writes and reads entry audit events."""

    def __init__(self, session: Session, clock: Clock = utc_now):
        self.session = session
        self.clock = clock
        self.events = AuditEventRepository(session)

    def record(
        self,
        entry: TimeEntry,
        actor_id: uuid.UUID,
        action: AuditAction,
        changes: Optional[Changes] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> EntryAuditEvent:
        """
        Append one audit event for an entry.

        Args:
            entry: Entry that was mutated
            actor_id: Real caller (never the impersonated identity)
            action: Kind of mutation
            changes: Field name -> {old?, new?}
            metadata: Free-form context such as the call source

        Returns:
            The flushed audit event
        """
        event = self.events.create(
            entry_id=entry.id,
            user_id=entry.user_id,
            actor_id=actor_id,
            action=action,
            changes=_jsonable(changes) if changes else None,
            metadata_=_jsonable(metadata) if metadata else None,
            created_at=self.clock(),
        )
        logger.debug(f"Audit {action.value} on entry {entry.id} by {actor_id}")
        return event

    def history(self, entry_id: uuid.UUID, caller_id: uuid.UUID) -> List[dict]:
        """
        Audit trail of an entry, newest first, with actor names resolved.

        Soft-deleted entries keep their history readable.

        Raises:
            NotFoundError: If the entry does not exist
            ForbiddenError: If the caller does not own the entry
        """
        entry = TimeEntryRepository(self.session).get(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        if entry.user_id != caller_id:
            raise ForbiddenError("Not your entry")

        events = self.events.get_by_entry(entry_id)
        names = UserRepository(self.session).display_names(
            [event.actor_id for event in events]
        )
        return [
            {
                "id": event.id,
                "entry_id": event.entry_id,
                "action": event.action.value,
                "actor_id": event.actor_id,
                "actor_name": names.get(event.actor_id, "Unknown"),
                "changes": event.changes,
                "metadata": event.metadata_,
                "created_at": as_utc(event.created_at),
            }
            for event in events
        ]
