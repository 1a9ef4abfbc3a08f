"""
Reference data routes.

Projects and labels for pickers in the entry editor.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timeledger.api.auth import get_identity
from timeledger.api.schemas import LabelView, ProjectResponse
from timeledger.db.connection import get_db
from timeledger.db.repositories import LabelRepository, ProjectRepository
from timeledger.ledger import Identity

router = APIRouter()


@router.get("/projects", response_model=list[ProjectResponse])
async def list_projects(
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> list[ProjectResponse]:
    """Active projects with their client names, sorted by name."""
    return [
        ProjectResponse.model_validate(project)
        for project in ProjectRepository(session).list_active()
    ]


@router.get("/labels", response_model=list[LabelView])
async def list_labels(
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> list[LabelView]:
    """All labels, sorted by name."""
    return [
        LabelView(id=label.id, name=label.name, color=label.color)
        for label in LabelRepository(session).list_all()
    ]
