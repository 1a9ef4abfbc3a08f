"""
API schemas for timeledger.

Pydantic models for request validation. Responses use the assembled views
from timeledger.models.views, re-exported here.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from timeledger.ledger.entries import EntryPatch
from timeledger.models.views import (
    AuditEventView,
    DayGroup,
    EntryView,
    IssueRef,
    LabelView,
    Stats,
    TimerState,
)

__all__ = [
    "AdjustmentCreate",
    "AuditEventView",
    "DayGroup",
    "EntryCreate",
    "EntryPatch",
    "EntryView",
    "LabelView",
    "MoveBlockRequest",
    "ProjectResponse",
    "SplitRequest",
    "Stats",
    "TimerStart",
    "TimerState",
]


# ===== Entry Schemas =====


class EntryCreate(BaseModel):
    """Request body for a manual entry."""

    description: str = ""
    project_id: Optional[UUID] = None
    issue: Optional[IssueRef] = None
    label_ids: list[UUID] = Field(default_factory=list)
    started_at: datetime
    stopped_at: datetime
    note: Optional[str] = None


class AdjustmentCreate(BaseModel):
    """Signed duration correction; the note is mandatory."""

    duration_seconds: int
    note: str


class MoveBlockRequest(BaseModel):
    """Move one segment into a new entry."""

    segment_id: UUID
    description: Optional[str] = None
    project_id: Optional[UUID] = None


class SplitRequest(BaseModel):
    """Carve a trailing duration off an entry."""

    duration_seconds: int
    description: Optional[str] = None
    project_id: Optional[UUID] = None
    note: Optional[str] = None


# ===== Timer Schemas =====


class TimerStart(BaseModel):
    """Start a timer on a new entry."""

    description: str = ""
    project_id: Optional[UUID] = None
    label_ids: list[UUID] = Field(default_factory=list)


# ===== Reference Schemas =====


class ProjectResponse(BaseModel):
    """Project with client name, for pickers."""

    id: UUID
    name: str
    color: Optional[str] = None
    client_name: Optional[str] = None

    class Config:
        from_attributes = True
