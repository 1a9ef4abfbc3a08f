"""
Timer API routes.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timeledger.api.auth import get_identity
from timeledger.api.errors import to_http_exception
from timeledger.api.schemas import TimerStart, TimerState
from timeledger.db.connection import get_db
from timeledger.exceptions import LedgerError
from timeledger.ledger import Identity, TimerService

router = APIRouter()


@router.get("", response_model=TimerState)
async def get_timer(
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> TimerState:
    """Current running timer, if any."""
    return TimerService(session).current(identity.user_id)


@router.post("/start", response_model=TimerState)
async def start_timer(
    body: Optional[TimerStart] = None,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> TimerState:
    """Start a timer on a new entry, stopping any running timer first."""
    body = body or TimerStart()
    try:
        return TimerService(session).start(
            identity,
            description=body.description,
            project_id=body.project_id,
            label_ids=body.label_ids,
        )
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.post("/stop", response_model=TimerState)
async def stop_timer(
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> TimerState:
    """Stop the running timer."""
    try:
        return TimerService(session).stop(identity)
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.post("/resume/{entry_id}", response_model=TimerState)
async def resume_timer(
    entry_id: UUID,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> TimerState:
    """Resume tracking on an existing entry."""
    try:
        return TimerService(session).resume(entry_id, identity)
    except LedgerError as exc:
        raise to_http_exception(exc)
