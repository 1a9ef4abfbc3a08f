"""
Reference lookups: projects (with their client) and users.

These are read-only from the ledger's point of view.
"""

import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from timeledger.db.repositories.base import BaseRepository
from timeledger.models.db import Client, Project, User


@dataclass(frozen=True)
class ProjectRef:
    """Display data for a project."""

    id: uuid.UUID
    name: str
    color: Optional[str]
    client_name: Optional[str]


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project model."""

    def __init__(self, session: Session):
        super().__init__(Project, session)

    def resolve_project_name(self, project_id: Optional[uuid.UUID]) -> Optional[str]:
        """
        Resolve a project id to its name.

        Args:
            project_id: Project UUID (None allowed)

        Returns:
            Project name, or None for a missing/None project
        """
        if project_id is None:
            return None
        row = (
            self.session.query(Project.name).filter(Project.id == project_id).first()
        )
        return row[0] if row else None

    def resolve_projects(
        self, project_ids: List[uuid.UUID]
    ) -> Dict[uuid.UUID, ProjectRef]:
        """
        Resolve distinct project ids to display data with one joined query.

        Args:
            project_ids: Project UUIDs (duplicates and None are ignored)

        Returns:
            Mapping of project id to ProjectRef
        """
        distinct_ids = {pid for pid in project_ids if pid is not None}
        if not distinct_ids:
            return {}
        rows = (
            self.session.query(Project.id, Project.name, Project.color, Client.name)
            .outerjoin(Client, Client.id == Project.client_id)
            .filter(Project.id.in_(distinct_ids))
            .all()
        )
        return {
            pid: ProjectRef(id=pid, name=name, color=color, client_name=client_name)
            for pid, name, color, client_name in rows
        }

    def list_active(self) -> List[ProjectRef]:
        """
        Active projects of active clients, for pickers.

        Returns:
            Project refs ordered by name
        """
        rows = (
            self.session.query(Project.id, Project.name, Project.color, Client.name)
            .join(Client, Client.id == Project.client_id)
            .filter(Project.is_active == True, Client.is_active == True)  # noqa: E712
            .order_by(Project.name)
            .all()
        )
        return [
            ProjectRef(id=pid, name=name, color=color, client_name=client_name)
            for pid, name, color, client_name in rows
        ]


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    def __init__(self, session: Session):
        super().__init__(User, session)

    def display_names(self, user_ids: List[uuid.UUID]) -> Dict[uuid.UUID, str]:
        """
        Resolve user ids to display names.

        Args:
            user_ids: User UUIDs

        Returns:
            Mapping of user id to display name
        """
        users = self.get_many(list(set(user_ids)))
        return {user.id: user.display_name for user in users}

    def lock(self, user_id: uuid.UUID) -> Optional[User]:
        """
        Lock a user's row until the end of the transaction.

        Anything that starts or stops a running segment takes this lock first,
        so concurrent timer changes for one user run one after another.
        """
        return (
            self.session.query(User)
            .filter(User.id == user_id)
            .with_for_update()
            .one_or_none()
        )
