"""
SQLAlchemy database models for timeledger.

These models represent the database schema for time entries, the segments
that carry their duration, entry labels and the append-only audit trail,
plus the reference data (users, clients, projects, labels) they point at.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from timeledger.utils.clock import utc_now


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class SegmentType(str, enum.Enum):
    """Kind of time slice held by an entry."""

    CLOCKED = "clocked"  # Timer-driven; running while stopped_at is NULL
    MANUAL = "manual"  # User-entered start and stop
    ADJUSTMENT = "adjustment"  # Signed correction with no start/stop


class LinkKind(str, enum.Enum):
    """Provenance of an adjustment left behind by a restructuring operation."""

    MOVED = "moved"
    SPLIT = "split"


class AuditAction(str, enum.Enum):
    """Kinds of mutation recorded in the entry audit trail."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RESTORED = "restored"
    ADJUSTMENT_ADDED = "adjustment_added"
    BLOCK_MOVED = "block_moved"
    ENTRY_SPLIT = "entry_split"
    TIMER_STARTED = "timer_started"
    TIMER_STOPPED = "timer_stopped"
    TIMER_RESUMED = "timer_resumed"


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda x: [e.value for e in x],
    )


class User(Base):
    """Identity row; only used to resolve owners and audit actors."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, display_name={self.display_name!r})>"


class Client(Base):
    """Client that owns projects."""

    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    projects: Mapped[list["Project"]] = relationship(back_populates="client")

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name={self.name!r})>"


class Project(Base):
    """Project an entry can be booked against."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[str] = mapped_column(String(16), nullable=False, default="#00D4AA")
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    client: Mapped["Client"] = relationship(back_populates="projects")

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name!r})>"


class Label(Base):
    """Free-form tag attached to entries."""

    __tablename__ = "labels"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(16))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Label(id={self.id}, name={self.name!r})>"


class TimeEntry(Base):
    """
    User-facing unit of tracked work.

    An entry carries metadata only; its duration is the sum of its segments.
    Entries are never hard-deleted, is_active=False marks a soft delete.
    """

    __tablename__ = "time_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id"), index=True
    )

    # Issue-tracker passthrough
    issue_key: Mapped[Optional[str]] = mapped_column(String(64))
    issue_summary: Mapped[Optional[str]] = mapped_column(Text)
    issue_connection_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True)
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    segments: Mapped[list["EntrySegment"]] = relationship(
        back_populates="entry", order_by="EntrySegment.created_at"
    )
    audit_events: Mapped[list["EntryAuditEvent"]] = relationship(
        back_populates="entry"
    )

    __table_args__ = (Index("ix_time_entries_user_active", "user_id", "is_active"),)

    def __repr__(self) -> str:
        return (
            f"<TimeEntry(id={self.id}, user_id={self.user_id}, "
            f"description={self.description!r}, is_active={self.is_active})>"
        )


class EntrySegment(Base):
    """
    Slice of time, or signed correction, owned by exactly one entry.

    Adjustments created by move-block and split carry their provenance in the
    link_* columns instead of an encoded note.
    """

    __tablename__ = "entry_segments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    entry_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("time_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[SegmentType] = mapped_column(
        _enum_column(SegmentType), nullable=False
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), index=True
    )
    stopped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer)
    note: Mapped[Optional[str]] = mapped_column(Text)

    # Non-owning provenance of move/split residue
    link_kind: Mapped[Optional[LinkKind]] = mapped_column(_enum_column(LinkKind))
    link_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    link_segment_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    link_description: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    entry: Mapped["TimeEntry"] = relationship(back_populates="segments")

    # At most one running clocked segment per entry
    __table_args__ = (
        Index(
            "uq_entry_segments_one_running",
            "entry_id",
            unique=True,
            postgresql_where=text("type = 'clocked' AND stopped_at IS NULL"),
            sqlite_where=text("type = 'clocked' AND stopped_at IS NULL"),
        ),
    )

    @property
    def is_running(self) -> bool:
        return self.type == SegmentType.CLOCKED and self.stopped_at is None

    def __repr__(self) -> str:
        return (
            f"<EntrySegment(id={self.id}, entry_id={self.entry_id}, "
            f"type={self.type.value if self.type else None}, "
            f"duration_seconds={self.duration_seconds})>"
        )


class EntryLabel(Base):
    """Join between entries and labels."""

    __tablename__ = "entry_labels"

    entry_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("time_entries.id", ondelete="CASCADE"),
        primary_key=True,
    )
    label_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("labels.id", ondelete="CASCADE"),
        primary_key=True,
    )


class EntryAuditEvent(Base):
    """Immutable record of one mutation to an entry."""

    __tablename__ = "entry_audit_log"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    entry_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("time_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )  # Entry owner
    actor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )  # Real caller, never the impersonated identity
    action: Mapped[AuditAction] = mapped_column(
        _enum_column(AuditAction), nullable=False
    )
    changes: Mapped[Optional[dict]] = mapped_column(JSONB)
    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSONB)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    entry: Mapped["TimeEntry"] = relationship(back_populates="audit_events")

    __table_args__ = (
        Index("ix_entry_audit_log_actor_created", "actor_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<EntryAuditEvent(id={self.id}, entry_id={self.entry_id}, "
            f"action={self.action.value if self.action else None})>"
        )
