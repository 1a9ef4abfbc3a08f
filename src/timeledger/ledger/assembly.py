"""
Range assembly and day grouping.

Builds entry views for presentation: batch-loads entries, segments, labels and
project reference data for only the ids involved, joins them in memory, and
buckets entries by the calendar day of their most recent segment start.
"""

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from timeledger.config import settings
from timeledger.db.repositories import (
    EntryLabelRepository,
    EntrySegmentRepository,
    ProjectRepository,
    TimeEntryRepository,
)
from timeledger.exceptions import InvalidInputError
from timeledger.ledger import durations
from timeledger.models.db import EntrySegment, LinkKind, TimeEntry
from timeledger.models.views import (
    DayGroup,
    EntryView,
    IssueRef,
    LabelView,
    SegmentLinkView,
    SegmentView,
    Stats,
)
from timeledger.utils.clock import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)


def _segment_view(segment: EntrySegment) -> SegmentView:
    link = None
    if segment.link_kind is not None:
        link = SegmentLinkView(
            kind=segment.link_kind.value,
            target_entry_id=segment.link_entry_id,
            target_segment_id=segment.link_segment_id,
            target_description=segment.link_description,
        )
    else:
        # Provenance written as note text before the link columns existed
        legacy = durations.segment_link(segment)
        if legacy is not None:
            moved = legacy.kind == LinkKind.MOVED
            link = SegmentLinkView(
                kind=legacy.kind.value,
                target_entry_id=None if moved else legacy.target_id,
                target_segment_id=legacy.target_id if moved else None,
                target_description=legacy.text if moved else None,
            )
    return SegmentView(
        id=segment.id,
        type=segment.type.value,
        started_at=as_utc(segment.started_at),
        stopped_at=as_utc(segment.stopped_at),
        duration_seconds=segment.duration_seconds,
        note=segment.note,
        link=link,
        created_at=as_utc(segment.created_at),
    )


def _issue_ref(entry: TimeEntry) -> Optional[IssueRef]:
    if not entry.issue_key:
        return None
    return IssueRef(
        key=entry.issue_key,
        summary=entry.issue_summary,
        external_connection_id=entry.issue_connection_id,
    )


class EntryAssembler:
    """Read-side assembly of entry views and day groups."""

    def __init__(
        self,
        session: Session,
        clock: Clock = utc_now,
        timezone_name: Optional[str] = None,
    ):
        self.session = session
        self.clock = clock
        self.tz = ZoneInfo(timezone_name or settings.ledger_timezone)

    def build_views(
        self, entry_ids: List[uuid.UUID], now: Optional[datetime] = None
    ) -> Dict[uuid.UUID, EntryView]:
        """
        Assemble views for a set of entries with one query per table.

        Args:
            entry_ids: Entry UUIDs
            now: Instant used for live running time (defaults to the clock)

        Returns:
            Mapping of entry id to EntryView (unknown ids are skipped)
        """
        now = now or self.clock()
        ids = list(dict.fromkeys(entry_ids))
        entries = TimeEntryRepository(self.session).get_many(ids)
        segments_by_entry = EntrySegmentRepository(self.session).get_by_entries(ids)
        labels_by_entry = EntryLabelRepository(self.session).labels_for_entries(ids)
        projects = ProjectRepository(self.session).resolve_projects(
            [entry.project_id for entry in entries]
        )

        views: Dict[uuid.UUID, EntryView] = {}
        for entry in entries:
            segments = segments_by_entry.get(entry.id, [])
            project = projects.get(entry.project_id) if entry.project_id else None
            timed = [s for s in durations.timeline_segments(segments) if s.started_at]
            views[entry.id] = EntryView(
                id=entry.id,
                user_id=entry.user_id,
                description=entry.description,
                project_id=entry.project_id,
                project_name=project.name if project else None,
                project_color=project.color if project else None,
                client_name=project.client_name if project else None,
                issue=_issue_ref(entry),
                labels=[
                    LabelView(id=label.id, name=label.name, color=label.color)
                    for label in labels_by_entry.get(entry.id, [])
                ],
                segments=[_segment_view(segment) for segment in segments],
                total_duration_seconds=durations.entry_total_seconds(segments, now),
                is_running=durations.running_segment(segments) is not None,
                started_at=durations.first_started_at(timed),
                last_segment_at=durations.last_started_at(timed)
                or as_utc(entry.created_at),
                is_active=entry.is_active,
                created_at=as_utc(entry.created_at),
            )
        return views

    def build_view(self, entry_id: uuid.UUID) -> Optional[EntryView]:
        """Assemble a single entry view, or None if the entry does not exist."""
        return self.build_views([entry_id]).get(entry_id)

    def day_of(self, instant: datetime) -> date:
        """Calendar day of an instant in the ledger timezone."""
        return as_utc(instant).astimezone(self.tz).date()

    def _day_start(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz).astimezone(
            ZoneInfo("UTC")
        )

    def list_days(
        self,
        user_id: uuid.UUID,
        date_from: date,
        date_to: date,
        include_deleted: bool = False,
    ) -> List[DayGroup]:
        """
        Entries of a user in an inclusive date range, grouped by day.

        Args:
            user_id: Owner UUID
            date_from: First calendar day (inclusive)
            date_to: Last calendar day (inclusive)
            include_deleted: List soft-deleted entries instead of live ones

        Returns:
            Day groups newest first; entries by last_segment_at descending

        Raises:
            InvalidInputError: If date_from is after date_to
        """
        if date_from > date_to:
            raise InvalidInputError("'from' must not be after 'to'")

        now = self.clock()
        range_start = self._day_start(date_from)
        range_end = self._day_start(date_to + timedelta(days=1))
        entry_ids = TimeEntryRepository(self.session).find_ids_in_range(
            user_id, range_start, range_end, active=not include_deleted
        )
        views = self.build_views(entry_ids, now=now)

        buckets: Dict[date, List[EntryView]] = defaultdict(list)
        for view in views.values():
            buckets[self.day_of(view.last_segment_at)].append(view)

        groups = []
        for day in sorted(buckets, reverse=True):
            day_entries = sorted(
                buckets[day], key=lambda v: v.last_segment_at, reverse=True
            )
            groups.append(
                DayGroup(
                    date=day,
                    total_seconds=sum(v.total_duration_seconds for v in day_entries),
                    entries=day_entries,
                )
            )
        logger.debug(
            f"Assembled {len(views)} entries in {len(groups)} days "
            f"for user {user_id} ({date_from}..{date_to})"
        )
        return groups

    def stats(self, user_id: uuid.UUID) -> Stats:
        """
        Tracked seconds today and in the current week (Monday start).

        Uses the same bucketing rule as list_days, over active entries only.
        """
        today = self.day_of(self.clock())
        week_start = today - timedelta(days=today.weekday())
        groups = self.list_days(user_id, week_start, today)
        in_week = [group for group in groups if week_start <= group.date <= today]
        return Stats(
            today_seconds=sum(g.total_seconds for g in in_week if g.date == today),
            week_seconds=sum(g.total_seconds for g in in_week),
        )
