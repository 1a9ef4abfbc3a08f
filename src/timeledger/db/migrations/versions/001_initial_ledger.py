"""Initial ledger schema

Revision ID: 001_initial_ledger
Revises:
Create Date: 2026-10-19

Reference tables (users, clients, projects, labels), time entries with their
segments and labels, and the append-only entry audit log.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_ledger"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        _created_at(),
    )

    op.create_table(
        "clients",
        _uuid_pk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        _created_at(),
    )

    op.create_table(
        "projects",
        _uuid_pk(),
        sa.Column(
            "client_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clients.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("color", sa.String(16), nullable=False, server_default="#00D4AA"),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        _created_at(),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"])

    op.create_table(
        "labels",
        _uuid_pk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("color", sa.String(16)),
        _created_at(),
    )

    op.create_table(
        "time_entries",
        _uuid_pk(),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id")
        ),
        sa.Column("issue_key", sa.String(64)),
        sa.Column("issue_summary", sa.Text()),
        sa.Column("issue_connection_id", postgresql.UUID(as_uuid=True)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        _created_at(),
    )
    op.create_index("ix_time_entries_user_id", "time_entries", ["user_id"])
    op.create_index("ix_time_entries_project_id", "time_entries", ["project_id"])
    op.create_index("ix_time_entries_is_active", "time_entries", ["is_active"])
    op.create_index(
        "ix_time_entries_user_active", "time_entries", ["user_id", "is_active"]
    )

    op.create_table(
        "entry_segments",
        _uuid_pk(),
        sa.Column(
            "entry_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("time_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("stopped_at", sa.DateTime(timezone=True)),
        sa.Column("duration_seconds", sa.Integer()),
        sa.Column("note", sa.Text()),
        sa.Column("link_kind", sa.String(5)),
        sa.Column("link_entry_id", postgresql.UUID(as_uuid=True)),
        sa.Column("link_segment_id", postgresql.UUID(as_uuid=True)),
        sa.Column("link_description", sa.Text()),
        _created_at(),
    )
    op.create_index("ix_entry_segments_entry_id", "entry_segments", ["entry_id"])
    op.create_index("ix_entry_segments_started_at", "entry_segments", ["started_at"])
    # At most one running clocked segment per entry
    op.create_index(
        "uq_entry_segments_one_running",
        "entry_segments",
        ["entry_id"],
        unique=True,
        postgresql_where=sa.text("type = 'clocked' AND stopped_at IS NULL"),
    )

    op.create_table(
        "entry_labels",
        sa.Column(
            "entry_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("time_entries.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "label_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("labels.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "entry_audit_log",
        _uuid_pk(),
        sa.Column(
            "entry_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("time_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column(
            "actor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("changes", postgresql.JSONB()),
        sa.Column("metadata", postgresql.JSONB()),
        _created_at(),
    )
    op.create_index("ix_entry_audit_log_entry_id", "entry_audit_log", ["entry_id"])
    op.create_index(
        "ix_entry_audit_log_created_at", "entry_audit_log", ["created_at"]
    )
    op.create_index(
        "ix_entry_audit_log_actor_created",
        "entry_audit_log",
        ["actor_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("entry_audit_log")
    op.drop_table("entry_labels")
    op.drop_table("entry_segments")
    op.drop_table("time_entries")
    op.drop_table("labels")
    op.drop_table("projects")
    op.drop_table("clients")
    op.drop_table("users")
