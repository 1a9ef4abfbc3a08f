"""
Entry mutation engine.

Every public mutating method validates its input first and only then writes.
All writes of one operation (entry rows, segments, labels, audit events)
happen in the caller's unit of work: the service flushes but never commits,
so a failure at any step, the audit insert included, rolls the whole
operation back. Store errors are not caught here; they reach the caller
unchanged so it can retry.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from timeledger.config import settings
from timeledger.db.repositories import (
    EntryLabelRepository,
    EntrySegmentRepository,
    LabelRepository,
    ProjectRepository,
    TimeEntryRepository,
    UserRepository,
)
from timeledger.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from timeledger.ledger import durations
from timeledger.ledger.assembly import EntryAssembler
from timeledger.ledger.audit import AuditTrail, diff, initial
from timeledger.ledger.identity import Identity
from timeledger.ledger.naming import next_copy_name
from timeledger.models.db import AuditAction, LinkKind, SegmentType, TimeEntry
from timeledger.models.views import EntryView, IssueRef
from timeledger.utils.clock import Clock, as_utc, elapsed_seconds, utc_now

logger = logging.getLogger(__name__)

MOVED_FROM_NOTE = "Moved from another entry"
MOVED_TO_NOTE = "Moved to another entry"
SPLIT_NOTE = "Split into another entry"


class EntryPatch(BaseModel):
    """
    Sparse metadata update.

    Presence is tracked per field: a field left out is untouched, a field
    sent as null is cleared. Use model_fields_set to tell them apart.
    """

    description: Optional[str] = None
    project_id: Optional[uuid.UUID] = None
    issue: Optional[IssueRef] = None
    label_ids: Optional[List[uuid.UUID]] = None


def _issue_snapshot(entry: TimeEntry) -> Optional[dict]:
    if not entry.issue_key:
        return None
    return {
        "key": entry.issue_key,
        "summary": entry.issue_summary,
        "external_connection_id": entry.issue_connection_id,
    }


def _apply_issue(entry: TimeEntry, issue: Optional[IssueRef]) -> None:
    entry.issue_key = issue.key if issue else None
    entry.issue_summary = issue.summary if issue else None
    entry.issue_connection_id = issue.external_connection_id if issue else None


class EntryService:
    """Transactional operations on entries and their segments."""

    def __init__(
        self,
        session: Session,
        clock: Clock = utc_now,
        allow_negative_totals: Optional[bool] = None,
    ):
        self.session = session
        self.clock = clock
        self.allow_negative_totals = (
            settings.allow_negative_totals
            if allow_negative_totals is None
            else allow_negative_totals
        )
        self.entries = TimeEntryRepository(session)
        self.segments = EntrySegmentRepository(session)
        self.entry_labels = EntryLabelRepository(session)
        self.labels = LabelRepository(session)
        self.projects = ProjectRepository(session)
        self.users = UserRepository(session)
        self.audit = AuditTrail(session, clock)
        self.assembler = EntryAssembler(session, clock)

    # ===== Helpers =====

    def load_owned(
        self, entry_id: uuid.UUID, identity: Identity, active: Optional[bool] = True
    ) -> TimeEntry:
        """
        Load and lock an entry owned by the caller.

        Args:
            active: Required is_active state; None accepts either

        Raises:
            NotFoundError: Missing entry, or wrong active state
            ForbiddenError: Entry owned by someone else
        """
        entry = self.entries.get_for_update(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        if entry.user_id != identity.user_id:
            logger.debug(f"User {identity.user_id} denied access to entry {entry_id}")
            raise ForbiddenError("Not your entry")
        if active is not None and entry.is_active != active:
            raise NotFoundError("Entry", entry_id)
        return entry

    def require_project(self, project_id: Optional[uuid.UUID]) -> Optional[str]:
        """Validate a project id and return its name."""
        if project_id is None:
            return None
        name = self.projects.resolve_project_name(project_id)
        if name is None:
            raise InvalidInputError(f"Unknown project: {project_id}")
        return name

    def require_labels(self, label_ids: Iterable[uuid.UUID]) -> List[uuid.UUID]:
        """Validate label ids; returns them de-duplicated and sorted."""
        wanted = sorted(set(label_ids), key=str)
        found = {label.id for label in self.labels.resolve(wanted)}
        missing = [label_id for label_id in wanted if label_id not in found]
        if missing:
            raise InvalidInputError(f"Unknown label: {missing[0]}")
        return wanted

    def _view(self, entry_id: uuid.UUID) -> EntryView:
        self.session.flush()
        view = self.assembler.build_view(entry_id)
        if view is None:
            raise NotFoundError("Entry", entry_id)
        return view

    # ===== Reads =====

    def get_entry(
        self, entry_id: uuid.UUID, identity: Identity, include_deleted: bool = False
    ) -> EntryView:
        """
        Get one assembled entry owned by the caller.

        Raises:
            NotFoundError: Missing, or soft-deleted unless include_deleted
            ForbiddenError: Entry owned by someone else
        """
        entry = self.entries.get(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        if entry.user_id != identity.user_id:
            raise ForbiddenError("Not your entry")
        if not entry.is_active and not include_deleted:
            raise NotFoundError("Entry", entry_id)
        return self._view(entry_id)

    # ===== Create =====

    def create_entry(
        self,
        identity: Identity,
        started_at: datetime,
        stopped_at: datetime,
        description: str = "",
        project_id: Optional[uuid.UUID] = None,
        issue: Optional[IssueRef] = None,
        label_ids: Iterable[uuid.UUID] = (),
        note: Optional[str] = None,
        source: str = "api",
    ) -> EntryView:
        """
        Create an entry with a single manual segment spanning [start, stop].

        Raises:
            InvalidInputError: stop before start, unknown project or label
        """
        start = as_utc(started_at)
        stop = as_utc(stopped_at)
        if stop < start:
            raise InvalidInputError("Stop time must not be before start time")
        project_name = self.require_project(project_id)
        labels = self.require_labels(label_ids)

        now = self.clock()
        duration = elapsed_seconds(start, stop)
        entry = self.entries.create(
            user_id=identity.user_id,
            description=description or "",
            project_id=project_id,
            is_active=True,
            created_at=now,
        )
        _apply_issue(entry, issue)
        self.segments.create(
            entry_id=entry.id,
            type=SegmentType.MANUAL,
            started_at=start,
            stopped_at=stop,
            duration_seconds=duration,
            note=note,
            created_at=now,
        )
        if labels:
            self.entry_labels.attach(entry.id, labels)

        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.CREATED,
            changes=initial(
                {
                    "description": entry.description,
                    "project": project_name,
                    "project_id": project_id,
                    "issue": _issue_snapshot(entry),
                    "labels": labels or None,
                    "started_at": start,
                    "stopped_at": stop,
                    "duration_seconds": duration,
                }
            ),
            metadata={"source": source},
        )
        logger.info(f"Created entry {entry.id} ({duration}s) for user {entry.user_id}")
        return self._view(entry.id)

    # ===== Update =====

    def update_entry(
        self,
        entry_id: uuid.UUID,
        identity: Identity,
        patch: EntryPatch,
        source: str = "api",
    ) -> EntryView:
        """
        Apply a sparse metadata patch. Segments and time fields are untouched.

        No audit event is written when nothing actually changed.

        Raises:
            NotFoundError: Missing or soft-deleted entry
            ForbiddenError: Entry owned by someone else
            InvalidInputError: Unknown project or label
        """
        fields = patch.model_fields_set
        entry = self.load_owned(entry_id, identity)
        new_project_name = (
            self.require_project(patch.project_id) if "project_id" in fields else None
        )
        new_labels = (
            self.require_labels(patch.label_ids or [])
            if "label_ids" in fields
            else None
        )

        before: dict = {}
        after: dict = {}

        if "description" in fields:
            before["description"] = entry.description
            after["description"] = patch.description or ""
            entry.description = patch.description or ""

        if "project_id" in fields:
            before["project"] = self.projects.resolve_project_name(entry.project_id)
            before["project_id"] = entry.project_id
            after["project"] = new_project_name
            after["project_id"] = patch.project_id
            entry.project_id = patch.project_id

        if "issue" in fields:
            before["issue"] = _issue_snapshot(entry)
            _apply_issue(entry, patch.issue)
            after["issue"] = _issue_snapshot(entry)

        if new_labels is not None:
            # Snapshot before replacing so the diff can show old -> new
            old_labels = self.entry_labels.label_ids_for_entry(entry.id)
            before["labels"] = old_labels
            after["labels"] = new_labels
            if old_labels != new_labels:
                self.entry_labels.replace(entry.id, new_labels)

        changes = diff(before, after)
        if changes:
            self.session.flush()
            self.audit.record(
                entry,
                identity.actor_id,
                AuditAction.UPDATED,
                changes=changes,
                metadata={"source": source},
            )
            logger.info(f"Updated entry {entry.id}: {sorted(changes)}")
        return self._view(entry.id)

    # ===== Delete / Restore =====

    def delete_entry(
        self, entry_id: uuid.UUID, identity: Identity, source: str = "api"
    ) -> None:
        """
        Soft-delete an entry, stopping its running segment first.

        Raises:
            NotFoundError: Missing or already deleted entry
            ForbiddenError: Entry owned by someone else
        """
        self.users.lock(identity.user_id)
        entry = self.load_owned(entry_id, identity)
        now = self.clock()
        metadata: dict = {"source": source}

        running = durations.running_segment(self.segments.get_by_entry(entry.id))
        if running is not None:
            metadata["stopped_segment_id"] = running.id
            metadata["stopped_duration_seconds"] = durations.freeze(running, now)

        entry.is_active = False
        self.session.flush()
        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.DELETED,
            changes={
                "description": {"old": entry.description},
                "project": {
                    "old": self.projects.resolve_project_name(entry.project_id)
                },
                "is_active": {"old": True, "new": False},
            },
            metadata=metadata,
        )
        logger.info(f"Deleted entry {entry.id}")

    def restore_entry(
        self, entry_id: uuid.UUID, identity: Identity, source: str = "api"
    ) -> EntryView:
        """
        Restore a soft-deleted entry. Segment state is left as it is.

        Raises:
            NotFoundError: Missing entry, or entry not deleted
            ForbiddenError: Entry owned by someone else
        """
        entry = self.load_owned(entry_id, identity, active=False)
        entry.is_active = True
        self.session.flush()
        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.RESTORED,
            changes={"is_active": {"old": False, "new": True}},
            metadata={"source": source},
        )
        logger.info(f"Restored entry {entry.id}")
        return self._view(entry.id)

    # ===== Adjustment =====

    def add_adjustment(
        self,
        entry_id: uuid.UUID,
        identity: Identity,
        duration_seconds: int,
        note: str,
        source: str = "api",
    ) -> EntryView:
        """
        Add a signed duration correction to an entry.

        A justification note is mandatory for any out-of-band time change.

        Raises:
            InvalidInputError: Zero duration, empty note, or (when negative
                totals are disallowed) a total that would drop below zero
            NotFoundError: Missing or soft-deleted entry
            ForbiddenError: Entry owned by someone else
        """
        if not duration_seconds:
            raise InvalidInputError("Adjustment duration must be non-zero")
        note = (note or "").strip()
        if not note:
            raise InvalidInputError("Adjustment note is required")

        entry = self.load_owned(entry_id, identity)
        now = self.clock()
        if not self.allow_negative_totals:
            total = durations.entry_total_seconds(
                self.segments.get_by_entry(entry.id), now
            )
            if total + duration_seconds < 0:
                raise InvalidInputError(
                    f"Cannot remove {-duration_seconds}s from an entry "
                    f"with {total}s tracked"
                )

        segment = self.segments.create(
            entry_id=entry.id,
            type=SegmentType.ADJUSTMENT,
            duration_seconds=duration_seconds,
            note=note,
            created_at=now,
        )
        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.ADJUSTMENT_ADDED,
            changes={
                "duration_seconds": {"new": duration_seconds},
                "note": {"new": note},
            },
            metadata={"source": source, "segment_id": segment.id},
        )
        logger.info(f"Adjusted entry {entry.id} by {duration_seconds}s")
        return self._view(entry.id)

    # ===== Move block =====

    def move_block(
        self,
        entry_id: uuid.UUID,
        identity: Identity,
        segment_id: uuid.UUID,
        description: Optional[str] = None,
        project_id: Optional[uuid.UUID] = None,
        source: str = "api",
    ) -> EntryView:
        """
        Move one segment's time into a brand-new entry.

        A running segment is stopped on the source and continues running on
        the new entry from its original start. The source keeps its segment
        and receives a negative adjustment of the moved duration linked to
        the destination, so source + destination totals are unchanged.

        Returns:
            View of the new entry

        Raises:
            NotFoundError: Missing or soft-deleted entry
            ForbiddenError: Entry owned by someone else
            InvalidInputError: Segment not on this entry, not a timed
                segment, already moved, or completed without a positive
                duration
        """
        self.users.lock(identity.user_id)
        entry = self.load_owned(entry_id, identity)
        segment = self.segments.get(segment_id)
        if segment is None or segment.entry_id != entry.id:
            raise InvalidInputError("Segment does not belong to this entry")
        if segment.type == SegmentType.ADJUSTMENT:
            raise InvalidInputError("Adjustments cannot be moved")
        if segment.id in durations.moved_segment_ids(
            self.segments.get_by_entry(entry.id)
        ):
            raise InvalidInputError("Segment has already been moved")
        was_running = segment.is_running
        if not was_running and not (segment.duration_seconds or 0) > 0:
            raise InvalidInputError("Segment has no duration to move")
        project_override = project_id is not None
        if project_override:
            self.require_project(project_id)

        now = self.clock()
        source_total_before = durations.entry_total_seconds(
            self.segments.get_by_entry(entry.id), now
        )

        # 1. Block duration, freezing a running segment
        if was_running:
            block = durations.freeze(segment, now)
        else:
            block = segment.duration_seconds

        # 2. Destination description
        if description is not None and description.strip():
            new_description = description.strip()
        else:
            new_description = next_copy_name(
                self.session, entry.user_id, entry.description
            )
        new_project_id = project_id if project_override else entry.project_id

        # 3. Destination entry, bucketed like the source
        new_entry = self.entries.create(
            user_id=entry.user_id,
            description=new_description,
            project_id=new_project_id,
            is_active=True,
            created_at=entry.created_at,
        )
        label_ids = self.entry_labels.label_ids_for_entry(entry.id)
        if label_ids:
            self.entry_labels.attach(new_entry.id, label_ids)

        # 4. Credit the destination
        if was_running:
            self.segments.create(
                entry_id=new_entry.id,
                type=SegmentType.CLOCKED,
                started_at=segment.started_at,
                stopped_at=None,
                duration_seconds=None,
                created_at=now,
            )
        else:
            self.segments.create(
                entry_id=new_entry.id,
                type=SegmentType.MANUAL,
                started_at=segment.started_at,
                stopped_at=segment.stopped_at,
                duration_seconds=block,
                note=MOVED_FROM_NOTE,
                created_at=now,
            )

        # 5. Debit the source with linked residue
        self.segments.create(
            entry_id=entry.id,
            type=SegmentType.ADJUSTMENT,
            duration_seconds=-block,
            note=MOVED_TO_NOTE,
            link_kind=LinkKind.MOVED,
            link_entry_id=new_entry.id,
            link_segment_id=segment.id,
            link_description=new_description,
            created_at=now,
        )

        # 6. One audit event per touched entry
        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.BLOCK_MOVED,
            changes={
                "total_seconds": {
                    "old": source_total_before,
                    "new": source_total_before - block,
                }
            },
            metadata={
                "source": source,
                "segment_id": segment.id,
                "moved_seconds": block,
                "target_entry_id": new_entry.id,
                "was_running": was_running,
            },
        )
        self.audit.record(
            new_entry,
            identity.actor_id,
            AuditAction.CREATED,
            changes=initial(
                {
                    "description": new_description,
                    "project": self.projects.resolve_project_name(new_project_id),
                    "project_id": new_project_id,
                    "duration_seconds": block,
                }
            ),
            metadata={
                "source": source,
                "source_entry_id": entry.id,
                "moved_running": was_running,
            },
        )
        logger.info(
            f"Moved segment {segment.id} ({block}s, running={was_running}) "
            f"from entry {entry.id} to new entry {new_entry.id}"
        )
        return self._view(new_entry.id)

    # ===== Split =====

    def split_entry(
        self,
        entry_id: uuid.UUID,
        identity: Identity,
        duration_seconds: int,
        description: Optional[str] = None,
        project_id: Optional[uuid.UUID] = None,
        note: Optional[str] = None,
        source: str = "api",
    ) -> EntryView:
        """
        Carve a trailing duration off an entry into a new entry.

        The new entry gets one manual segment ending where the source's last
        completed segment ends; the source gets a linked negative adjustment.

        Returns:
            View of the new entry

        Raises:
            NotFoundError: Missing or soft-deleted entry
            ForbiddenError: Entry owned by someone else
            InvalidInputError: Non-positive duration, no segments, a running
                segment, or a duration not strictly below the stored total
        """
        if duration_seconds is None or duration_seconds <= 0:
            raise InvalidInputError("Split duration must be positive")

        entry = self.load_owned(entry_id, identity)
        segments = self.segments.get_by_entry(entry.id)
        if not segments:
            raise InvalidInputError("Entry has no segments to split")
        if durations.running_segment(segments) is not None:
            raise InvalidInputError("Stop the running timer before splitting")
        total = durations.stored_total_seconds(segments)
        if duration_seconds >= total:
            raise InvalidInputError(
                f"Split duration {duration_seconds}s must be less than "
                f"the entry total {total}s"
            )
        end = durations.last_completed_end(segments)
        if end is None:
            raise InvalidInputError("Entry has no completed segment to split from")
        project_override = project_id is not None
        if project_override:
            self.require_project(project_id)

        now = self.clock()
        new_start = end - timedelta(seconds=duration_seconds)
        new_description = (
            description.strip()
            if description is not None and description.strip()
            else entry.description
        )
        new_project_id = project_id if project_override else entry.project_id
        reason = (note or "").strip() or SPLIT_NOTE

        new_entry = self.entries.create(
            user_id=entry.user_id,
            description=new_description,
            project_id=new_project_id,
            issue_key=entry.issue_key,
            issue_summary=entry.issue_summary,
            issue_connection_id=entry.issue_connection_id,
            is_active=True,
            created_at=now,
        )
        label_ids = self.entry_labels.label_ids_for_entry(entry.id)
        if label_ids:
            self.entry_labels.attach(new_entry.id, label_ids)

        self.segments.create(
            entry_id=new_entry.id,
            type=SegmentType.MANUAL,
            started_at=new_start,
            stopped_at=end,
            duration_seconds=duration_seconds,
            created_at=now,
        )
        self.segments.create(
            entry_id=entry.id,
            type=SegmentType.ADJUSTMENT,
            duration_seconds=-duration_seconds,
            note=reason,
            link_kind=LinkKind.SPLIT,
            link_entry_id=new_entry.id,
            link_description=new_description,
            created_at=now,
        )

        self.audit.record(
            entry,
            identity.actor_id,
            AuditAction.ENTRY_SPLIT,
            changes={
                "total_seconds": {"old": total, "new": total - duration_seconds}
            },
            metadata={
                "source": source,
                "split_seconds": duration_seconds,
                "target_entry_id": new_entry.id,
                "note": reason,
            },
        )
        self.audit.record(
            new_entry,
            identity.actor_id,
            AuditAction.CREATED,
            changes=initial(
                {
                    "description": new_description,
                    "project": self.projects.resolve_project_name(new_project_id),
                    "project_id": new_project_id,
                    "started_at": new_start,
                    "stopped_at": end,
                    "duration_seconds": duration_seconds,
                }
            ),
            metadata={"source": source, "source_entry_id": entry.id, "split": True},
        )
        logger.info(
            f"Split {duration_seconds}s off entry {entry.id} into {new_entry.id}"
        )
        return self._view(new_entry.id)

