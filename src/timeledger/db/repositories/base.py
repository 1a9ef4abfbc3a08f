"""
Base repository with common CRUD operations.
"""

import uuid
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from timeledger.models.db import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository providing basic CRUD operations.

    Repositories never commit; they add and flush within the caller's
    unit of work so multi-table operations stay atomic.
    """

    def __init__(self, model: Type[ModelType], session: Session):
        self.model = model
        self.session = session

    def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record and flush it so generated ids are available.

        Args:
            **kwargs: Model field values

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.session.flush()
        return instance

    def get(self, id: uuid.UUID) -> Optional[ModelType]:
        """
        Get a record by primary key.

        Args:
            id: Record UUID

        Returns:
            Model instance or None
        """
        return self.session.get(self.model, id)

    def get_many(self, ids: List[uuid.UUID]) -> List[ModelType]:
        """
        Get several records by primary key in a single query.

        Args:
            ids: Record UUIDs

        Returns:
            Found model instances (missing ids are skipped)
        """
        if not ids:
            return []
        return self.session.query(self.model).filter(self.model.id.in_(ids)).all()

    def update(self, id: uuid.UUID, **kwargs: Any) -> Optional[ModelType]:
        """
        Update a record.

        Args:
            id: Record UUID
            **kwargs: Fields to update

        Returns:
            Updated model instance or None if not found
        """
        instance = self.get(id)
        if not instance:
            return None
        for key, value in kwargs.items():
            setattr(instance, key, value)
        self.session.flush()
        return instance

    def count(self) -> int:
        """
        Count records.

        Returns:
            Number of records
        """
        return self.session.query(self.model).count()
