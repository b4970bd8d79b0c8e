"""Group membership and admin designation repositories."""

from collections import defaultdict
from uuid import UUID

from sqlalchemy import func, select

from groups_api.models.orm.membership import GroupAdminORM, GroupMemberORM
from groups_api.repositories.base import BaseRepository


class GroupMemberRepository(BaseRepository[GroupMemberORM]):
    """Repository for membership rows."""

    model = GroupMemberORM

    async def get_membership(self, group_id: UUID, user_id: str) -> GroupMemberORM | None:
        """Get a user's membership in a group.

        Args:
            group_id: Group UUID
            user_id: User ID

        Returns:
            GroupMemberORM or None if not a member
        """
        result = await self.session.execute(
            select(GroupMemberORM).where(
                GroupMemberORM.group_id == group_id,
                GroupMemberORM.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_member(self, group_id: UUID, user_id: str) -> bool:
        """Check whether a user is a member of a group."""
        return await self.get_membership(group_id, user_id) is not None

    async def list_by_group(self, group_id: UUID) -> list[GroupMemberORM]:
        """Get all memberships of a group ordered by join time."""
        result = await self.session.execute(
            select(GroupMemberORM)
            .where(GroupMemberORM.group_id == group_id)
            .order_by(GroupMemberORM.joined_at)
        )
        return list(result.scalars().all())

    async def list_by_user(self, user_id: str) -> list[GroupMemberORM]:
        """Get all memberships held by a user ordered by join time."""
        result = await self.session.execute(
            select(GroupMemberORM)
            .where(GroupMemberORM.user_id == user_id)
            .order_by(GroupMemberORM.joined_at)
        )
        return list(result.scalars().all())

    async def get_user_ids(self, group_id: UUID) -> list[str]:
        """Get the user IDs of all members of a group."""
        result = await self.session.execute(
            select(GroupMemberORM.user_id)
            .where(GroupMemberORM.group_id == group_id)
            .order_by(GroupMemberORM.joined_at)
        )
        return list(result.scalars().all())

    async def get_user_ids_for_groups(self, group_ids: list[UUID]) -> set[str]:
        """Get the distinct user IDs that belong to any of the given groups."""
        if not group_ids:
            return set()
        result = await self.session.execute(
            select(GroupMemberORM.user_id)
            .where(GroupMemberORM.group_id.in_(group_ids))
            .distinct()
        )
        return set(result.scalars().all())

    async def get_member_group_ids(self, user_id: str, group_ids: list[UUID]) -> set[UUID]:
        """Get which of the given groups a user belongs to."""
        if not group_ids:
            return set()
        result = await self.session.execute(
            select(GroupMemberORM.group_id).where(
                GroupMemberORM.user_id == user_id,
                GroupMemberORM.group_id.in_(group_ids),
            )
        )
        return set(result.scalars().all())

    async def count_by_groups(self, group_ids: list[UUID]) -> dict[UUID, int]:
        """Count members per group.

        Args:
            group_ids: Group UUIDs

        Returns:
            Dict mapping group ID to member count (groups without members omitted)
        """
        if not group_ids:
            return {}
        result = await self.session.execute(
            select(GroupMemberORM.group_id, func.count(GroupMemberORM.id))
            .where(GroupMemberORM.group_id.in_(group_ids))
            .group_by(GroupMemberORM.group_id)
        )
        return {group_id: count for group_id, count in result.all()}

    async def list_by_assignment(self, group_id: UUID, assignment_type: str) -> list[GroupMemberORM]:
        """Get memberships of a group created by one assignment path."""
        result = await self.session.execute(
            select(GroupMemberORM).where(
                GroupMemberORM.group_id == group_id,
                GroupMemberORM.assignment_type == assignment_type,
            )
        )
        return list(result.scalars().all())

    async def remove(self, group_id: UUID, user_id: str) -> bool:
        """Delete a user's membership in a group.

        Returns:
            True if a membership was deleted
        """
        deleted = await self.delete_where(
            GroupMemberORM.group_id == group_id,
            GroupMemberORM.user_id == user_id,
        )
        return deleted > 0


class GroupAdminRepository(BaseRepository[GroupAdminORM]):
    """Repository for admin designations."""

    model = GroupAdminORM

    async def is_admin(self, group_id: UUID, user_id: str) -> bool:
        """Check whether a user holds an admin designation in a group."""
        result = await self.session.execute(
            select(GroupAdminORM.id).where(
                GroupAdminORM.group_id == group_id,
                GroupAdminORM.user_id == user_id,
            )
        )
        return result.first() is not None

    async def get_user_ids(self, group_id: UUID) -> list[str]:
        """Get the user IDs of all admins of a group."""
        result = await self.session.execute(
            select(GroupAdminORM.user_id)
            .where(GroupAdminORM.group_id == group_id)
            .order_by(GroupAdminORM.designated_at)
        )
        return list(result.scalars().all())

    async def get_admin_group_ids(self, user_id: str, group_ids: list[UUID]) -> set[UUID]:
        """Get which of the given groups a user is an admin of."""
        if not group_ids:
            return set()
        result = await self.session.execute(
            select(GroupAdminORM.group_id).where(
                GroupAdminORM.user_id == user_id,
                GroupAdminORM.group_id.in_(group_ids),
            )
        )
        return set(result.scalars().all())

    async def get_user_ids_by_groups(self, group_ids: list[UUID]) -> dict[UUID, list[str]]:
        """Get admin user IDs per group."""
        if not group_ids:
            return {}
        result = await self.session.execute(
            select(GroupAdminORM.group_id, GroupAdminORM.user_id).where(
                GroupAdminORM.group_id.in_(group_ids)
            )
        )
        admins: dict[UUID, list[str]] = defaultdict(list)
        for group_id, user_id in result.all():
            admins[group_id].append(user_id)
        return dict(admins)

    async def remove(self, group_id: UUID, user_id: str) -> bool:
        """Delete a user's admin designation in a group.

        Returns:
            True if a designation was deleted
        """
        deleted = await self.delete_where(
            GroupAdminORM.group_id == group_id,
            GroupAdminORM.user_id == user_id,
        )
        return deleted > 0
