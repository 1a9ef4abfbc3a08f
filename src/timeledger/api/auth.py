"""
Caller identity for API endpoints.

Authentication itself is handled upstream; requests arrive with the effective
user in X-User-Id and, when an administrator impersonates someone, the real
caller in X-Actor-Id. Ledger operations check ownership against the user and
record the actor on every audit event.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from timeledger.db.connection import get_db
from timeledger.db.repositories import UserRepository
from timeledger.ledger.identity import Identity

logger = logging.getLogger(__name__)


def _parse_user_id(value: str, header: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


def get_identity(
    x_user_id: Optional[str] = Header(
        None,
        description="Effective user UUID (required)",
        alias="X-User-Id",
    ),
    x_actor_id: Optional[str] = Header(
        None,
        description="Real caller UUID when impersonating (defaults to X-User-Id)",
        alias="X-Actor-Id",
    ),
    session: Session = Depends(get_db),
) -> Identity:
    """
    FastAPI dependency resolving the caller identity from request headers.

    Args:
        x_user_id: Effective user UUID from X-User-Id header
        x_actor_id: Real caller UUID from X-Actor-Id header
        session: Database session from dependency injection

    Returns:
        Identity with validated user and actor ids

    Raises:
        HTTPException(401): If the header is missing or a user is unknown/inactive
        HTTPException(400): If a user id is malformed
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )

    user_id = _parse_user_id(x_user_id, "X-User-Id")
    actor_id = _parse_user_id(x_actor_id, "X-Actor-Id") if x_actor_id else user_id

    user_repo = UserRepository(session)
    for uid in {user_id, actor_id}:
        user = user_repo.get(uid)
        if user is None or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unknown or inactive user",
            )

    identity = Identity(user_id=user_id, actor_id=actor_id)
    if identity.impersonating:
        logger.info(f"Actor {actor_id} acting as user {user_id}")
    return identity
