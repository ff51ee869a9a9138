"""
Base CRUD operations for SQLAlchemy models.

Provides generic create, read and update operations plus guarded
status transitions that can be inherited by model-specific CRUD classes.

Dependencies: sqlalchemy, kb_pipeline.core.state_machine
System role: Foundation for all database CRUD operations
"""

import enum
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kb_pipeline.boundary.db.base import Base
from kb_pipeline.core.state_machine import Entity, allowed_sources

ModelT = TypeVar("ModelT", bound=Base)


class BaseCRUD(Generic[ModelT]):
    """
    Generic base class for CRUD operations.

    Provides standard database operations that work with any SQLAlchemy model.
    Subclasses specify the model class and, for stateful models, the entity
    whose transition table guards ``status_field``.

    Type Parameters:
        ModelT: SQLAlchemy model class inheriting from Base

    Attributes:
        model: The SQLAlchemy model class to operate on
        entity: Transition table owner, or None for stateless models
        status_field: Name of the status column guarded by the table
    """

    def __init__(
        self,
        model: type[ModelT],
        entity: Entity | None = None,
        status_field: str = "status",
    ) -> None:
        """
        Initialize CRUD with target model.

        Args:
            model: SQLAlchemy model class for database operations
            entity: Entity whose transition table applies to status_field
            status_field: Status column name
        """
        self.model = model
        self.entity = entity
        self.status_field = status_field

    async def create(self, session: AsyncSession, **kwargs) -> ModelT:
        """
        Create a new record in the database.

        Args:
            session: Async database session
            **kwargs: Model field values

        Returns:
            Created model instance with generated ID and timestamps
        """
        instance = self.model(**kwargs)
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        return instance

    async def get_by_id(self, session: AsyncSession, id: UUID) -> ModelT | None:
        """
        Retrieve a single record by primary key.

        Args:
            session: Async database session
            id: UUID primary key

        Returns:
            Model instance if found, None otherwise
        """
        stmt = select(self.model).where(self.model.id == id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_by_id(
        self,
        session: AsyncSession,
        id: UUID,
        **kwargs,
    ) -> bool:
        """
        Update non-status fields of a record by primary key.

        Args:
            session: Async database session
            id: UUID primary key
            **kwargs: Fields to update with new values

        Returns:
            True if a row was updated, False if not found
        """
        if self.entity is not None and self.status_field in kwargs:
            raise ValueError(
                f"{self.model.__name__}.{self.status_field} must change via transition_by_id"
            )
        stmt = update(self.model).where(self.model.id == id).values(**kwargs)
        result = await session.execute(stmt)
        return result.rowcount > 0

    async def exists(self, session: AsyncSession, id: UUID) -> bool:
        """
        Check if a record exists by primary key.

        Args:
            session: Async database session
            id: UUID primary key

        Returns:
            True if record exists, False otherwise
        """
        stmt = select(self.model.id).where(self.model.id == id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def transition_by_id(
        self,
        session: AsyncSession,
        id: UUID,
        target: enum.Enum,
        *,
        retry: bool = False,
        **values: Any,
    ) -> bool:
        """
        Move a record to ``target`` if its current status allows it.

        Issues ``UPDATE ... WHERE id = :id AND status IN (<allowed sources>)``.
        A False result means the row is missing or another worker already
        moved it; callers treat that as "not mine" rather than an error.

        Args:
            session: Async database session
            id: UUID primary key
            target: Requested status
            retry: Also permit recovery edges from the transition table
            **values: Extra columns written in the same statement

        Returns:
            True if this call performed the transition
        """
        return await self.transition_where(
            session, target, self.model.id == id, retry=retry, **values
        ) > 0

    async def transition_where(
        self,
        session: AsyncSession,
        target: enum.Enum,
        *criteria: Any,
        retry: bool = False,
        sources: frozenset[str] | None = None,
        **values: Any,
    ) -> int:
        """
        Bulk form of :meth:`transition_by_id`.

        Args:
            session: Async database session
            target: Requested status
            *criteria: Additional WHERE clauses
            retry: Also permit recovery edges
            sources: Narrow the allowed source states further
            **values: Extra columns written in the same statement

        Returns:
            Number of rows transitioned
        """
        if self.entity is None:
            raise ValueError(f"{self.model.__name__} has no transition table")

        allowed = allowed_sources(self.entity, target, retry=retry)
        if sources is not None:
            allowed = allowed & sources
        if not allowed:
            return 0

        status_col = getattr(self.model, self.status_field)
        stmt = (
            update(self.model)
            .where(status_col.in_(sorted(allowed)), *criteria)
            .values({self.status_field: target, **values})
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount
