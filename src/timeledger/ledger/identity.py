"""Caller identity passed into ledger operations."""

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """
    Who is acting, and on whose behalf.

    Attributes:
        user_id: Effective user; ownership checks compare against this
        actor_id: Real caller; differs from user_id under impersonation and
            is what audit events record
    """

    user_id: uuid.UUID
    actor_id: uuid.UUID

    @classmethod
    def of(cls, user_id: uuid.UUID) -> "Identity":
        """Identity of a user acting as themselves."""
        return cls(user_id=user_id, actor_id=user_id)

    @property
    def impersonating(self) -> bool:
        return self.user_id != self.actor_id
