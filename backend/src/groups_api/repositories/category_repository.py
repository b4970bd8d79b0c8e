"""Category repository."""

from sqlalchemy import select

from groups_api.models.orm.category import CategoryORM
from groups_api.repositories.base import BaseRepository


class CategoryRepository(BaseRepository[CategoryORM]):
    """Repository for category operations."""

    model = CategoryORM

    async def get_by_name(self, name: str) -> CategoryORM | None:
        """Get category by name.

        Args:
            name: Category name

        Returns:
            CategoryORM or None if not found
        """
        result = await self.session.execute(
            select(CategoryORM).where(CategoryORM.name == name)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[CategoryORM]:
        """Get all categories ordered by name."""
        result = await self.session.execute(select(CategoryORM).order_by(CategoryORM.name))
        return list(result.scalars().all())
