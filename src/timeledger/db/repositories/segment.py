"""
Entry segment repository.
"""

import uuid
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from timeledger.db.repositories.base import BaseRepository
from timeledger.models.db import EntrySegment, SegmentType, TimeEntry


class EntrySegmentRepository(BaseRepository[EntrySegment]):
    """Repository for EntrySegment model."""

    def __init__(self, session: Session):
        super().__init__(EntrySegment, session)

    def get_by_entry(self, entry_id: uuid.UUID) -> List[EntrySegment]:
        """
        Get all segments of an entry in creation order.

        Args:
            entry_id: Entry UUID

        Returns:
            List of segments
        """
        return (
            self.session.query(EntrySegment)
            .filter(EntrySegment.entry_id == entry_id)
            .order_by(EntrySegment.created_at, EntrySegment.started_at)
            .all()
        )

    def get_by_entries(
        self, entry_ids: List[uuid.UUID]
    ) -> Dict[uuid.UUID, List[EntrySegment]]:
        """
        Batch-load segments for many entries with one query.

        Args:
            entry_ids: Entry UUIDs

        Returns:
            Mapping of entry id to its segments in creation order
        """
        grouped: Dict[uuid.UUID, List[EntrySegment]] = defaultdict(list)
        if not entry_ids:
            return grouped
        rows = (
            self.session.query(EntrySegment)
            .filter(EntrySegment.entry_id.in_(entry_ids))
            .order_by(EntrySegment.created_at, EntrySegment.started_at)
            .all()
        )
        for segment in rows:
            grouped[segment.entry_id].append(segment)
        return grouped

    def get_running_for_user(self, user_id: uuid.UUID) -> Optional[EntrySegment]:
        """
        Get the user's running segment across all of their entries.

        Args:
            user_id: Owner UUID

        Returns:
            The running clocked segment, or None
        """
        return (
            self.session.query(EntrySegment)
            .join(TimeEntry, TimeEntry.id == EntrySegment.entry_id)
            .filter(
                TimeEntry.user_id == user_id,
                EntrySegment.type == SegmentType.CLOCKED,
                EntrySegment.stopped_at.is_(None),
            )
            .order_by(EntrySegment.started_at.desc())
            .first()
        )

    def count_running_for_user(self, user_id: uuid.UUID) -> int:
        """
        Count running segments across a user's entries (never more than one).

        Args:
            user_id: Owner UUID

        Returns:
            Number of running segments
        """
        return (
            self.session.query(EntrySegment)
            .join(TimeEntry, TimeEntry.id == EntrySegment.entry_id)
            .filter(
                TimeEntry.user_id == user_id,
                EntrySegment.type == SegmentType.CLOCKED,
                EntrySegment.stopped_at.is_(None),
            )
            .count()
        )
