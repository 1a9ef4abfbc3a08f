"""
Entry API routes.

Endpoints for listing, creating and editing entries, restructuring them
(adjust, move-block, split) and reading their audit trail.
"""

from datetime import date, timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from timeledger.api.auth import get_identity
from timeledger.api.errors import to_http_exception
from timeledger.api.schemas import (
    AdjustmentCreate,
    AuditEventView,
    DayGroup,
    EntryCreate,
    EntryPatch,
    EntryView,
    MoveBlockRequest,
    SplitRequest,
)
from timeledger.config import settings
from timeledger.db.connection import get_db
from timeledger.exceptions import LedgerError
from timeledger.ledger import AuditTrail, EntryAssembler, EntryService, Identity

router = APIRouter()


@router.get("", response_model=list[DayGroup])
async def list_entries(
    date_from: Optional[date] = Query(
        None, alias="from", description="First day (YYYY-MM-DD), inclusive"
    ),
    date_to: Optional[date] = Query(
        None, alias="to", description="Last day (YYYY-MM-DD), inclusive"
    ),
    include_deleted: bool = Query(
        False, description="List soft-deleted entries instead of live ones"
    ),
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> list[DayGroup]:
    """
    List the caller's entries grouped by day, newest day first.

    Defaults to the last `default_range_days` days ending today.
    """
    assembler = EntryAssembler(session)
    if date_to is None:
        date_to = assembler.day_of(assembler.clock())
    if date_from is None:
        date_from = date_to - timedelta(days=settings.default_range_days - 1)

    try:
        return assembler.list_days(
            identity.user_id, date_from, date_to, include_deleted=include_deleted
        )
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.post("", response_model=EntryView, status_code=status.HTTP_201_CREATED)
async def create_entry(
    body: EntryCreate,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> EntryView:
    """Create a manual entry."""
    try:
        return EntryService(session).create_entry(
            identity,
            started_at=body.started_at,
            stopped_at=body.stopped_at,
            description=body.description,
            project_id=body.project_id,
            issue=body.issue,
            label_ids=body.label_ids,
            note=body.note,
        )
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.get("/{entry_id}", response_model=EntryView)
async def get_entry(
    entry_id: UUID,
    include_deleted: bool = Query(False),
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> EntryView:
    """Get one entry."""
    try:
        return EntryService(session).get_entry(
            entry_id, identity, include_deleted=include_deleted
        )
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.patch("/{entry_id}", response_model=EntryView)
async def update_entry(
    entry_id: UUID,
    patch: EntryPatch,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> EntryView:
    """
    Update entry metadata.

    Only fields present in the body are applied; an explicit null clears
    the field.
    """
    try:
        return EntryService(session).update_entry(entry_id, identity, patch)
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: UUID,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> Response:
    """Soft-delete an entry, stopping its timer if it is running."""
    try:
        EntryService(session).delete_entry(entry_id, identity)
    except LedgerError as exc:
        raise to_http_exception(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{entry_id}/restore", response_model=EntryView)
async def restore_entry(
    entry_id: UUID,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> EntryView:
    """Restore a soft-deleted entry."""
    try:
        return EntryService(session).restore_entry(entry_id, identity)
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.post("/{entry_id}/adjust", response_model=EntryView)
async def add_adjustment(
    entry_id: UUID,
    body: AdjustmentCreate,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> EntryView:
    """Add a signed duration correction with a justification note."""
    try:
        return EntryService(session).add_adjustment(
            entry_id, identity, body.duration_seconds, body.note
        )
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.post(
    "/{entry_id}/move-block",
    response_model=EntryView,
    status_code=status.HTTP_201_CREATED,
)
async def move_block(
    entry_id: UUID,
    body: MoveBlockRequest,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> EntryView:
    """Move one segment's time into a new entry; returns the new entry."""
    try:
        return EntryService(session).move_block(
            entry_id,
            identity,
            body.segment_id,
            description=body.description,
            project_id=body.project_id,
        )
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.post(
    "/{entry_id}/split",
    response_model=EntryView,
    status_code=status.HTTP_201_CREATED,
)
async def split_entry(
    entry_id: UUID,
    body: SplitRequest,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> EntryView:
    """Split a trailing duration off an entry; returns the new entry."""
    try:
        return EntryService(session).split_entry(
            entry_id,
            identity,
            body.duration_seconds,
            description=body.description,
            project_id=body.project_id,
            note=body.note,
        )
    except LedgerError as exc:
        raise to_http_exception(exc)


@router.get("/{entry_id}/audit", response_model=list[AuditEventView])
async def get_audit_trail(
    entry_id: UUID,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> list[AuditEventView]:
    """Audit trail of an entry, newest first."""
    try:
        events = AuditTrail(session).history(entry_id, identity.user_id)
    except LedgerError as exc:
        raise to_http_exception(exc)
    return [AuditEventView(**event) for event in events]
