"""
Assembled read models returned by the ledger services.

These are pydantic models so the API can return them directly.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LabelView(BaseModel):
    """Label attached to an entry."""

    id: UUID
    name: str
    color: Optional[str] = None


class IssueRef(BaseModel):
    """Issue-tracker reference, passed through untouched."""

    key: str
    summary: Optional[str] = None
    external_connection_id: Optional[UUID] = None


class SegmentLinkView(BaseModel):
    """Where the time of a move/split residue went."""

    kind: str  # moved | split
    target_entry_id: Optional[UUID] = None
    target_segment_id: Optional[UUID] = None
    target_description: Optional[str] = None


class SegmentView(BaseModel):
    """One segment of an entry."""

    id: UUID
    type: str
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None  # None while running
    note: Optional[str] = None
    link: Optional[SegmentLinkView] = None
    created_at: datetime


class EntryView(BaseModel):
    """Fully assembled entry."""

    id: UUID
    user_id: UUID
    description: str
    project_id: Optional[UUID] = None
    project_name: Optional[str] = None
    project_color: Optional[str] = None
    client_name: Optional[str] = None
    issue: Optional[IssueRef] = None
    labels: list[LabelView] = Field(default_factory=list)
    segments: list[SegmentView] = Field(default_factory=list)
    total_duration_seconds: int = 0
    is_running: bool = False
    started_at: Optional[datetime] = None  # Earliest timed segment
    last_segment_at: datetime  # Day-bucketing key
    is_active: bool = True
    created_at: datetime


class DayGroup(BaseModel):
    """Entries sharing a calendar day."""

    date: date
    total_seconds: int
    entries: list[EntryView] = Field(default_factory=list)


class AuditEventView(BaseModel):
    """One audit trail event."""

    id: UUID
    entry_id: UUID
    action: str
    actor_id: UUID
    actor_name: str
    changes: Optional[dict[str, dict[str, Any]]] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class TimerState(BaseModel):
    """Whether the user has a running timer, and on which entry."""

    running: bool
    entry: Optional[EntryView] = None


class Stats(BaseModel):
    """Tracked time today and this week."""

    today_seconds: int
    week_seconds: int
