"""
Label repositories: label reference data and the entry/label join.
"""

import uuid
from collections import defaultdict
from typing import Dict, List

from sqlalchemy.orm import Session

from timeledger.db.repositories.base import BaseRepository
from timeledger.models.db import EntryLabel, Label


class LabelRepository(BaseRepository[Label]):
    """Repository for Label model."""

    def __init__(self, session: Session):
        super().__init__(Label, session)

    def list_all(self) -> List[Label]:
        """All labels ordered by name."""
        return self.session.query(Label).order_by(Label.name).all()

    def resolve(self, label_ids: List[uuid.UUID]) -> List[Label]:
        """
        Resolve label ids to labels, keeping the requested order.

        Args:
            label_ids: Label UUIDs

        Returns:
            Labels found, in request order
        """
        found = {label.id: label for label in self.get_many(list(label_ids))}
        return [found[label_id] for label_id in label_ids if label_id in found]


class EntryLabelRepository:
    """Repository for the entry/label join table."""

    def __init__(self, session: Session):
        self.session = session

    def label_ids_for_entry(self, entry_id: uuid.UUID) -> List[uuid.UUID]:
        """
        Get the label ids attached to an entry, sorted for stable diffs.

        Args:
            entry_id: Entry UUID

        Returns:
            Sorted label UUIDs
        """
        rows = (
            self.session.query(EntryLabel.label_id)
            .filter(EntryLabel.entry_id == entry_id)
            .all()
        )
        return sorted((row[0] for row in rows), key=str)

    def attach(self, entry_id: uuid.UUID, label_ids: List[uuid.UUID]) -> None:
        """
        Attach labels to an entry; duplicate ids are attached once.

        Args:
            entry_id: Entry UUID
            label_ids: Label UUIDs
        """
        for label_id in dict.fromkeys(label_ids):
            self.session.add(EntryLabel(entry_id=entry_id, label_id=label_id))
        self.session.flush()

    def replace(self, entry_id: uuid.UUID, label_ids: List[uuid.UUID]) -> None:
        """
        Replace an entry's label set.

        Args:
            entry_id: Entry UUID
            label_ids: New label UUIDs
        """
        existing = (
            self.session.query(EntryLabel).filter(EntryLabel.entry_id == entry_id).all()
        )
        for link in existing:
            self.session.delete(link)
        self.session.flush()
        self.attach(entry_id, label_ids)

    def labels_for_entries(
        self, entry_ids: List[uuid.UUID]
    ) -> Dict[uuid.UUID, List[Label]]:
        """
        Batch-load labels for many entries with one joined query.

        Args:
            entry_ids: Entry UUIDs

        Returns:
            Mapping of entry id to its labels ordered by name
        """
        grouped: Dict[uuid.UUID, List[Label]] = defaultdict(list)
        if not entry_ids:
            return grouped
        rows = (
            self.session.query(EntryLabel.entry_id, Label)
            .join(Label, Label.id == EntryLabel.label_id)
            .filter(EntryLabel.entry_id.in_(entry_ids))
            .order_by(Label.name)
            .all()
        )
        for entry_id, label in rows:
            grouped[entry_id].append(label)
        return grouped
