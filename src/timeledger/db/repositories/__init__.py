"""
Repository layer for database operations.

Provides a clean API for database access on ledger models.
"""

from timeledger.db.repositories.audit import AuditEventRepository
from timeledger.db.repositories.base import BaseRepository
from timeledger.db.repositories.entry import TimeEntryRepository
from timeledger.db.repositories.label import EntryLabelRepository, LabelRepository
from timeledger.db.repositories.reference import (
    ProjectRef,
    ProjectRepository,
    UserRepository,
)
from timeledger.db.repositories.segment import EntrySegmentRepository

__all__ = [
    "AuditEventRepository",
    "BaseRepository",
    "EntryLabelRepository",
    "EntrySegmentRepository",
    "LabelRepository",
    "ProjectRef",
    "ProjectRepository",
    "TimeEntryRepository",
    "UserRepository",
]
