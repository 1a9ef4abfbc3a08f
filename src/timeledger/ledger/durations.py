"""
Duration accounting for entries and their segments.

An entry's total is the sum of its segment durations, with the running
segment's live elapsed time standing in for its NULL duration. Split and
move-block keep the combined total of source and destination unchanged.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Set

from timeledger.models.db import EntrySegment, LinkKind, SegmentType
from timeledger.utils.clock import as_utc, elapsed_seconds

_LINK_NOTE_RE = re.compile(
    r"^(?P<kind>moved|split):(?P<target>[0-9a-fA-F-]{32,36}):(?P<text>.*)$", re.DOTALL
)


@dataclass(frozen=True)
class SegmentLink:
    """Parsed provenance of a move/split adjustment."""

    kind: LinkKind
    target_id: uuid.UUID
    text: str


def segment_seconds(segment: EntrySegment, now: datetime) -> int:
    """
    Seconds a segment contributes to its entry's total.

    Running segments contribute their live elapsed time, never less than zero.
    """
    if segment.is_running:
        return max(0, elapsed_seconds(segment.started_at, now))
    return segment.duration_seconds or 0


def entry_total_seconds(segments: Iterable[EntrySegment], now: datetime) -> int:
    """Displayed total of an entry, including live time of a running segment."""
    return sum(segment_seconds(segment, now) for segment in segments)


def stored_total_seconds(segments: Iterable[EntrySegment]) -> int:
    """Sum of stored durations only; running segments count as zero."""
    return sum(segment.duration_seconds or 0 for segment in segments)


def running_segment(segments: Iterable[EntrySegment]) -> Optional[EntrySegment]:
    """The entry's running segment, if any."""
    for segment in segments:
        if segment.is_running:
            return segment
    return None


def freeze(segment: EntrySegment, now: datetime) -> int:
    """
    Stop a running segment at now and store its rounded duration.

    Returns:
        The frozen duration in seconds
    """
    if not segment.is_running:
        raise ValueError(f"Segment {segment.id} is not running")
    duration = max(0, elapsed_seconds(segment.started_at, now))
    segment.stopped_at = as_utc(now)
    segment.duration_seconds = duration
    return duration


def segment_link(segment: EntrySegment) -> Optional[SegmentLink]:
    """
    Provenance of a move/split adjustment.

    Reads the link columns, falling back to the textual note form for
    adjustments recorded before the link had columns of its own.
    """
    if segment.type != SegmentType.ADJUSTMENT:
        return None
    if segment.link_kind == LinkKind.MOVED:
        return SegmentLink(
            kind=LinkKind.MOVED,
            target_id=segment.link_segment_id,
            text=segment.link_description or "",
        )
    if segment.link_kind == LinkKind.SPLIT:
        return SegmentLink(
            kind=LinkKind.SPLIT,
            target_id=segment.link_entry_id,
            text=segment.note or "",
        )
    return parse_link_note(segment.note)


def is_residue(segment: EntrySegment) -> bool:
    """True for adjustments left behind by a move-block or split."""
    return segment_link(segment) is not None


def moved_segment_ids(segments: Iterable[EntrySegment]) -> Set[uuid.UUID]:
    """Ids of segments whose time has already been moved off this entry."""
    moved = set()
    for segment in segments:
        link = segment_link(segment)
        if link is not None and link.kind == LinkKind.MOVED:
            moved.add(link.target_id)
    return moved


def timeline_segments(segments: Iterable[EntrySegment]) -> List[EntrySegment]:
    """
    Segments to draw on a timeline.

    Move/split residue is bookkeeping, not work done, so it is left out.
    Other adjustments are kept; they have no start and callers skip them when
    they need clock times.
    """
    return [segment for segment in segments if not is_residue(segment)]


def last_completed_end(segments: Iterable[EntrySegment]) -> Optional[datetime]:
    """End time of the latest completed timed segment."""
    ends = [
        as_utc(segment.stopped_at)
        for segment in segments
        if segment.type != SegmentType.ADJUSTMENT and segment.stopped_at is not None
    ]
    return max(ends) if ends else None


def first_started_at(segments: Iterable[EntrySegment]) -> Optional[datetime]:
    """Start of the earliest timed segment."""
    starts = [
        as_utc(segment.started_at)
        for segment in segments
        if segment.started_at is not None
    ]
    return min(starts) if starts else None


def last_started_at(segments: Iterable[EntrySegment]) -> Optional[datetime]:
    """Start of the most recently started timed segment."""
    starts = [
        as_utc(segment.started_at)
        for segment in segments
        if segment.started_at is not None
    ]
    return max(starts) if starts else None


def format_link_note(segment: EntrySegment) -> Optional[str]:
    """
    Render the textual provenance of a residue adjustment.

    moved:<original segment id>:<destination description>
    split:<destination entry id>:<reason>
    """
    if segment.link_kind == LinkKind.MOVED:
        return f"moved:{segment.link_segment_id}:{segment.link_description or ''}"
    if segment.link_kind == LinkKind.SPLIT:
        return f"split:{segment.link_entry_id}:{segment.note or ''}"
    return None


def parse_link_note(note: Optional[str]) -> Optional[SegmentLink]:
    """
    Parse a textual provenance note.

    Returns:
        SegmentLink, or None when the note is not a provenance note
    """
    if not note:
        return None
    match = _LINK_NOTE_RE.match(note)
    if not match:
        return None
    try:
        target_id = uuid.UUID(match.group("target"))
    except ValueError:
        return None
    return SegmentLink(
        kind=LinkKind(match.group("kind")),
        target_id=target_id,
        text=match.group("text"),
    )
