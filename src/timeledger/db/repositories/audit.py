"""
Entry audit log repository.

Append-only: there are deliberately no update or delete helpers here.
"""

import uuid
from typing import List

from sqlalchemy.orm import Session

from timeledger.db.repositories.base import BaseRepository
from timeledger.models.db import EntryAuditEvent


class AuditEventRepository(BaseRepository[EntryAuditEvent]):
    """Repository for EntryAuditEvent model."""

    def __init__(self, session: Session):
        super().__init__(EntryAuditEvent, session)

    def update(self, id, **kwargs):  # type: ignore[override]
        raise TypeError("Audit events are append-only")

    def get_by_entry(self, entry_id: uuid.UUID) -> List[EntryAuditEvent]:
        """
        Get an entry's audit events, newest first.

        Args:
            entry_id: Entry UUID

        Returns:
            List of audit events in reverse-chronological order
        """
        return (
            self.session.query(EntryAuditEvent)
            .filter(EntryAuditEvent.entry_id == entry_id)
            .order_by(EntryAuditEvent.created_at.desc())
            .all()
        )

    def count_by_entry(self, entry_id: uuid.UUID) -> int:
        """Number of audit events recorded for an entry."""
        return (
            self.session.query(EntryAuditEvent)
            .filter(EntryAuditEvent.entry_id == entry_id)
            .count()
        )
