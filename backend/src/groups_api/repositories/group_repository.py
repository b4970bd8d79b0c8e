"""Group repository."""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from groups_api.models.orm.group import GroupORM
from groups_api.repositories.base import BaseRepository
from groups_api.utils.validation import escape_like_wildcards


class GroupRepository(BaseRepository[GroupORM]):
    """Repository for group operations."""

    model = GroupORM

    async def get_with_category(self, group_id: UUID) -> GroupORM | None:
        """Get group with its category loaded.

        Args:
            group_id: Group UUID

        Returns:
            GroupORM with category or None
        """
        result = await self.session.execute(
            select(GroupORM)
            .options(selectinload(GroupORM.category))
            .where(GroupORM.id == group_id)
        )
        return result.scalar_one_or_none()

    async def get_by_name_in_category(self, category_id: UUID, name: str) -> GroupORM | None:
        """Get a group by its name within a category."""
        result = await self.session.execute(
            select(GroupORM).where(
                GroupORM.category_id == category_id,
                GroupORM.name == name,
            )
        )
        return result.scalar_one_or_none()

    async def get_many(self, group_ids: list[UUID]) -> dict[UUID, GroupORM]:
        """Get groups by IDs.

        Args:
            group_ids: Group UUIDs

        Returns:
            Dict mapping group ID to GroupORM
        """
        if not group_ids:
            return {}
        result = await self.session.execute(
            select(GroupORM)
            .options(selectinload(GroupORM.category))
            .where(GroupORM.id.in_(group_ids))
        )
        return {group.id: group for group in result.scalars().all()}

    async def list_filtered(
        self,
        category_id: UUID | None = None,
        visibility: str | None = None,
        join_mode: str | None = None,
        search: str | None = None,
        group_ids: list[UUID] | None = None,
    ) -> list[GroupORM]:
        """List groups with optional filters, category loaded.

        Args:
            category_id: Restrict to one category
            visibility: Restrict to one visibility level
            join_mode: Restrict to one join mode
            search: Case-insensitive substring of name or description
            group_ids: Restrict to these groups

        Returns:
            List of GroupORM ordered by name
        """
        query = select(GroupORM).options(selectinload(GroupORM.category))

        if category_id:
            query = query.where(GroupORM.category_id == category_id)
        if visibility:
            query = query.where(GroupORM.visibility == visibility)
        if join_mode:
            query = query.where(GroupORM.join_mode == join_mode)
        if search:
            pattern = f"%{escape_like_wildcards(search.lower())}%"
            query = query.where(
                or_(
                    func.lower(GroupORM.name).like(pattern, escape="\\"),
                    func.lower(GroupORM.description).like(pattern, escape="\\"),
                )
            )
        if group_ids is not None:
            if not group_ids:
                return []
            query = query.where(GroupORM.id.in_(group_ids))

        result = await self.session.execute(query.order_by(GroupORM.name))
        return list(result.scalars().all())

    async def list_by_category(self, category_id: UUID) -> list[GroupORM]:
        """Get all groups in a category ordered by name."""
        result = await self.session.execute(
            select(GroupORM)
            .where(GroupORM.category_id == category_id)
            .order_by(GroupORM.name)
        )
        return list(result.scalars().all())

    async def list_ids_by_type(self, group_type: str) -> list[UUID]:
        """Get the IDs of all groups of one type."""
        result = await self.session.execute(
            select(GroupORM.id).where(GroupORM.group_type == group_type)
        )
        return list(result.scalars().all())
