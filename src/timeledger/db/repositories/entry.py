"""
Time entry repository.
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.orm import Session

from timeledger.db.repositories.base import BaseRepository
from timeledger.models.db import EntrySegment, SegmentType, TimeEntry

TIMED_SEGMENT_TYPES = (SegmentType.CLOCKED, SegmentType.MANUAL)


class TimeEntryRepository(BaseRepository[TimeEntry]):
    """Repository for TimeEntry model."""

    def __init__(self, session: Session):
        super().__init__(TimeEntry, session)

    def get_for_update(self, entry_id: uuid.UUID) -> TimeEntry | None:
        """
        Get an entry row, locking it for the rest of the transaction.

        Concurrent mutations of the same entry serialize on this lock on
        PostgreSQL; SQLite ignores FOR UPDATE and serializes writers itself.

        Args:
            entry_id: Entry UUID

        Returns:
            TimeEntry instance or None
        """
        return (
            self.session.query(TimeEntry)
            .filter(TimeEntry.id == entry_id)
            .with_for_update()
            .first()
        )

    def get_by_user(
        self, user_id: uuid.UUID, active: bool = True
    ) -> List[TimeEntry]:
        """
        Get all entries of a user.

        Args:
            user_id: Owner UUID
            active: True for live entries, False for soft-deleted ones

        Returns:
            List of entries, newest first
        """
        return (
            self.session.query(TimeEntry)
            .filter(TimeEntry.user_id == user_id, TimeEntry.is_active == active)
            .order_by(TimeEntry.created_at.desc())
            .all()
        )

    def sibling_descriptions(self, user_id: uuid.UUID, base: str) -> List[str]:
        """
        Get descriptions of a user's active entries named base or "base (N)".

        Only the candidate sibling set is scanned, not the whole history.
        LIKE wildcards inside base are escaped.

        Args:
            user_id: Owner UUID
            base: Description without any "(N)" suffix

        Returns:
            Matching descriptions
        """
        escaped = base.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"{escaped} (%)" if base else "(%)"
        rows = (
            self.session.query(TimeEntry.description)
            .filter(
                TimeEntry.user_id == user_id,
                TimeEntry.is_active == True,  # noqa: E712
                or_(
                    TimeEntry.description == base,
                    TimeEntry.description.like(pattern, escape="\\"),
                ),
            )
            .all()
        )
        return [row[0] for row in rows]

    def find_ids_in_range(
        self,
        user_id: uuid.UUID,
        range_start: datetime,
        range_end: datetime,
        active: bool = True,
    ) -> List[uuid.UUID]:
        """
        Find entries that belong in a date range.

        An entry qualifies when one of its timed segments overlaps the range
        (a running segment overlaps when it started before range_end), or,
        when it has no timed segments at all, when it was created in range.

        Args:
            user_id: Owner UUID
            range_start: Inclusive lower bound (UTC)
            range_end: Exclusive upper bound (UTC)
            active: True for live entries, False for soft-deleted ones

        Returns:
            Distinct entry ids
        """
        overlapping = (
            select(EntrySegment.entry_id)
            .join(TimeEntry, TimeEntry.id == EntrySegment.entry_id)
            .where(
                TimeEntry.user_id == user_id,
                TimeEntry.is_active == active,
                EntrySegment.type.in_(TIMED_SEGMENT_TYPES),
                EntrySegment.started_at < range_end,
                or_(
                    EntrySegment.stopped_at.is_(None),
                    EntrySegment.stopped_at > range_start,
                    EntrySegment.started_at >= range_start,
                ),
            )
            .distinct()
        )

        has_timed_segment = exists().where(
            and_(
                EntrySegment.entry_id == TimeEntry.id,
                EntrySegment.type.in_(TIMED_SEGMENT_TYPES),
            )
        )
        untimed = select(TimeEntry.id).where(
            TimeEntry.user_id == user_id,
            TimeEntry.is_active == active,
            TimeEntry.created_at >= range_start,
            TimeEntry.created_at < range_end,
            ~has_timed_segment,
        )

        ids = set(self.session.execute(overlapping).scalars().all())
        ids.update(self.session.execute(untimed).scalars().all())
        return list(ids)
