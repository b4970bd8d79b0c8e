"""Discord attachment repositories."""

from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.orm import selectinload

from groups_api.models.orm.discord import (
    GroupDiscordInviteORM,
    GroupDiscordServerORM,
    GroupDiscordServerRoleORM,
)
from groups_api.models.orm.group import GroupORM
from groups_api.repositories.base import BaseRepository


class DiscordServerRepository(BaseRepository[GroupDiscordServerORM]):
    """Repository for group Discord server attachments."""

    model = GroupDiscordServerORM

    async def get_with_roles(self, attachment_id: UUID) -> GroupDiscordServerORM | None:
        """Get an attachment with its roles loaded."""
        result = await self.session.execute(
            select(GroupDiscordServerORM)
            .options(selectinload(GroupDiscordServerORM.roles))
            .where(GroupDiscordServerORM.id == attachment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_group(self, group_id: UUID) -> list[GroupDiscordServerORM]:
        """Get the attachments of a group with roles loaded."""
        result = await self.session.execute(
            select(GroupDiscordServerORM)
            .options(selectinload(GroupDiscordServerORM.roles))
            .where(GroupDiscordServerORM.group_id == group_id)
            .order_by(GroupDiscordServerORM.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_auto_invite(self) -> list[tuple[GroupDiscordServerORM, str]]:
        """Get every auto-invite attachment with its group name.

        Returns:
            List of (attachment with roles, group name) tuples
        """
        result = await self.session.execute(
            select(GroupDiscordServerORM, GroupORM.name)
            .join(GroupORM, GroupORM.id == GroupDiscordServerORM.group_id)
            .options(selectinload(GroupDiscordServerORM.roles))
            .where(GroupDiscordServerORM.auto_invite.is_(True))
            .order_by(GroupORM.name, GroupDiscordServerORM.created_at)
            .execution_options(populate_existing=True)
        )
        return [(attachment, name) for attachment, name in result.all()]

    async def list_groups_by_server(self, discord_server_id: UUID) -> list[tuple[UUID, str]]:
        """Get (group ID, group name) pairs attached to a Discord server."""
        result = await self.session.execute(
            select(GroupORM.id, GroupORM.name)
            .join(GroupDiscordServerORM, GroupDiscordServerORM.group_id == GroupORM.id)
            .where(GroupDiscordServerORM.discord_server_id == discord_server_id)
            .order_by(GroupORM.name)
        )
        return [(group_id, name) for group_id, name in result.all()]


class DiscordServerRoleRepository(BaseRepository[GroupDiscordServerRoleORM]):
    """Repository for Discord role assignments."""

    model = GroupDiscordServerRoleORM


class DiscordInviteRepository(BaseRepository[GroupDiscordInviteORM]):
    """Repository for Discord invite audit records."""

    model = GroupDiscordInviteORM

    async def create_many(self, rows: list[dict]) -> int:
        """Insert audit records in one statement.

        Args:
            rows: Column values per record

        Returns:
            Number of records inserted
        """
        if not rows:
            return 0
        await self.session.execute(insert(GroupDiscordInviteORM), rows)
        return len(rows)

    async def list_by_group(self, group_id: UUID) -> list[GroupDiscordInviteORM]:
        """Get the invite audit records of a group, newest first."""
        result = await self.session.execute(
            select(GroupDiscordInviteORM)
            .where(GroupDiscordInviteORM.group_id == group_id)
            .order_by(GroupDiscordInviteORM.created_at.desc())
        )
        return list(result.scalars().all())
