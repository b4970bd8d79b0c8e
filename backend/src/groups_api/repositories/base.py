"""Base repository with common database operations."""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.exceptions import ConflictError
from groups_api.models.orm.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations.

    Inserts run inside a savepoint so a unique-constraint violation is
    reported as ConflictError without discarding earlier writes in the
    same unit of work.
    """

    model: type[T]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get(self, id: UUID) -> T | None:
        """Get a record by ID.

        Args:
            id: Record UUID

        Returns:
            Record or None if not found
        """
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, id: UUID) -> T | None:
        """Get a record by ID (alias for get)."""
        return await self.get(id)

    async def get_all(
        self,
        offset: int = 0,
        limit: int = 100,
    ) -> list[T]:
        """Get all records with pagination.

        Args:
            offset: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of records
        """
        result = await self.session.execute(
            select(self.model).offset(offset).limit(limit)
        )
        return list(result.scalars().all())

    async def count(self, *criteria: ColumnElement[bool]) -> int:
        """Count records matching optional criteria.

        Returns:
            Total count
        """
        stmt = select(func.count()).select_from(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def find_one(self, *criteria: ColumnElement[bool]) -> T | None:
        """Get the first record matching all criteria.

        Args:
            *criteria: SQLAlchemy filter expressions

        Returns:
            Record or None
        """
        result = await self.session.execute(
            select(self.model).where(*criteria).limit(1)
        )
        return result.scalars().first()

    async def find_many(
        self,
        *criteria: ColumnElement[bool],
        order_by: Sequence[Any] = (),
    ) -> list[T]:
        """Get all records matching all criteria.

        Args:
            *criteria: SQLAlchemy filter expressions
            order_by: Optional ordering clauses

        Returns:
            List of records
        """
        stmt = select(self.model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **kwargs: Any) -> T:
        """Create a new record.

        Args:
            **kwargs: Field values

        Returns:
            Created record

        Raises:
            ConflictError: If a unique constraint is violated
        """
        instance = self.model(**kwargs)
        try:
            async with self.session.begin_nested():
                self.session.add(instance)
                await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"{self.model.__tablename__} record already exists",
                {"constraint": str(e.orig)[:200]},
            ) from e
        await self.session.refresh(instance)
        return instance

    async def update(self, id: UUID, **kwargs: Any) -> T | None:
        """Update a record by ID.

        Args:
            id: Record UUID
            **kwargs: Fields to update

        Returns:
            Updated record or None if not found

        Raises:
            ConflictError: If the change violates a unique constraint
        """
        instance = await self.get_by_id(id)
        if instance is None:
            return None

        try:
            async with self.session.begin_nested():
                for key, value in kwargs.items():
                    if hasattr(instance, key):
                        setattr(instance, key, value)
                await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"{self.model.__tablename__} record already exists",
                {"constraint": str(e.orig)[:200]},
            ) from e
        await self.session.refresh(instance)
        return instance

    async def update_where(self, *criteria: ColumnElement[bool], **values: Any) -> int:
        """Bulk update records matching criteria.

        Args:
            *criteria: SQLAlchemy filter expressions
            **values: Column values to set

        Returns:
            Number of rows updated
        """
        result = await self.session.execute(
            update(self.model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def delete(self, id: UUID) -> bool:
        """Delete a record by ID.

        Args:
            id: Record UUID

        Returns:
            True if deleted, False if not found
        """
        instance = await self.get_by_id(id)
        if instance is None:
            return False

        await self.session.delete(instance)
        await self.session.flush()
        return True

    async def delete_where(self, *criteria: ColumnElement[bool]) -> int:
        """Bulk delete records matching criteria.

        Returns:
            Number of rows deleted
        """
        result = await self.session.execute(
            delete(self.model)
            .where(*criteria)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
