"""Permission catalogue repositories."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from groups_api.models.orm.permission import (
    GroupPermissionORM,
    PermissionCategoryORM,
    PermissionORM,
)
from groups_api.repositories.base import BaseRepository


class PermissionCategoryRepository(BaseRepository[PermissionCategoryORM]):
    """Repository for permission categories."""

    model = PermissionCategoryORM

    async def get_by_name(self, name: str) -> PermissionCategoryORM | None:
        """Get permission category by name."""
        result = await self.session.execute(
            select(PermissionCategoryORM).where(PermissionCategoryORM.name == name)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[PermissionCategoryORM]:
        """Get all permission categories ordered by name."""
        result = await self.session.execute(
            select(PermissionCategoryORM).order_by(PermissionCategoryORM.name)
        )
        return list(result.scalars().all())


class PermissionRepository(BaseRepository[PermissionORM]):
    """Repository for global permissions."""

    model = PermissionORM

    async def get_by_urn(self, urn: str) -> PermissionORM | None:
        """Get permission by URN.

        Args:
            urn: Permission URN

        Returns:
            PermissionORM or None if not found
        """
        result = await self.session.execute(select(PermissionORM).where(PermissionORM.urn == urn))
        return result.scalar_one_or_none()

    async def get_with_category(self, permission_id: UUID) -> PermissionORM | None:
        """Get permission with its category loaded."""
        result = await self.session.execute(
            select(PermissionORM)
            .options(selectinload(PermissionORM.category))
            .where(PermissionORM.id == permission_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_with_category(self, category_id: UUID | None = None) -> list[PermissionORM]:
        """List permissions with categories loaded, ordered by URN.

        Args:
            category_id: Optional category filter

        Returns:
            List of PermissionORM
        """
        query = select(PermissionORM).options(selectinload(PermissionORM.category))
        if category_id:
            query = query.where(PermissionORM.category_id == category_id)
        result = await self.session.execute(query.order_by(PermissionORM.urn))
        return list(result.scalars().all())


class GroupPermissionRepository(BaseRepository[GroupPermissionORM]):
    """Repository for permissions attached to groups."""

    model = GroupPermissionORM

    def _with_details(self):
        return select(GroupPermissionORM).options(
            selectinload(GroupPermissionORM.permission).selectinload(PermissionORM.category)
        )

    async def get_with_details(self, group_permission_id: UUID) -> GroupPermissionORM | None:
        """Get a group permission with its global permission and category loaded."""
        result = await self.session.execute(
            self._with_details()
            .where(GroupPermissionORM.id == group_permission_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_groups(self, group_ids: list[UUID]) -> list[GroupPermissionORM]:
        """Get all permissions attached to any of the given groups.

        Args:
            group_ids: Group UUIDs

        Returns:
            List of GroupPermissionORM with permission details loaded,
            in attachment order
        """
        if not group_ids:
            return []
        result = await self.session.execute(
            self._with_details()
            .where(GroupPermissionORM.group_id.in_(group_ids))
            .order_by(GroupPermissionORM.created_at, GroupPermissionORM.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_by_permission(self, group_id: UUID, permission_id: UUID) -> GroupPermissionORM | None:
        """Get the attachment of a global permission to a group."""
        result = await self.session.execute(
            select(GroupPermissionORM).where(
                GroupPermissionORM.group_id == group_id,
                GroupPermissionORM.permission_id == permission_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_custom_urn(self, group_id: UUID, urn: str) -> GroupPermissionORM | None:
        """Get a group-scoped permission by URN."""
        result = await self.session.execute(
            select(GroupPermissionORM).where(
                GroupPermissionORM.group_id == group_id,
                GroupPermissionORM.custom_urn == urn,
            )
        )
        return result.scalar_one_or_none()

    async def get_group_ids_for_permission(self, permission_id: UUID) -> list[UUID]:
        """Get the groups a global permission is attached to."""
        result = await self.session.execute(
            select(GroupPermissionORM.group_id)
            .where(GroupPermissionORM.permission_id == permission_id)
            .distinct()
        )
        return list(result.scalars().all())

    async def get_group_ids_for_category(self, category_id: UUID) -> list[UUID]:
        """Get the groups holding any permission from a permission category."""
        result = await self.session.execute(
            select(GroupPermissionORM.group_id)
            .join(PermissionORM, PermissionORM.id == GroupPermissionORM.permission_id)
            .where(PermissionORM.category_id == category_id)
            .distinct()
        )
        return list(result.scalars().all())
