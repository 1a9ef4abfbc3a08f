"""
Tracked-time statistics routes.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timeledger.api.auth import get_identity
from timeledger.api.schemas import Stats
from timeledger.db.connection import get_db
from timeledger.ledger import EntryAssembler, Identity

router = APIRouter()


@router.get("", response_model=Stats)
async def get_stats(
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> Stats:
    """Seconds tracked today and this week (weeks start on Monday)."""
    return EntryAssembler(session).stats(identity.user_id)
