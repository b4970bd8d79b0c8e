"""Discord server attachment service.

Only intent is stored here. The chat-platform bridge reads the attachment
configuration, performs the invites itself and reports the outcomes back
as audit records.
"""

import logging
from collections import defaultdict
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.exceptions import (
    ConflictError,
    DiscordAttachmentNotFoundError,
    DuplicateError,
    GroupNotFoundError,
    PermissionDeniedError,
)
from groups_api.models.domain.discord import (
    AutoInviteGroup,
    DiscordAttachmentConfig,
    DiscordInviteAudit,
    DiscordServerAttachment,
    DiscordServerRole,
)
from groups_api.models.dto.discord import (
    DiscordInviteAuditCreate,
    DiscordRoleAssign,
    DiscordServerAttach,
    DiscordServerAttachmentUpdate,
    DiscordServerGroup,
)
from groups_api.models.orm.discord import GroupDiscordServerORM
from groups_api.repositories.discord_repository import (
    DiscordInviteRepository,
    DiscordServerRepository,
    DiscordServerRoleRepository,
)
from groups_api.repositories.group_repository import GroupRepository
from groups_api.services.access_policy import can_manage_group
from groups_api.services.cache_service import GroupCache
from groups_api.utils.secure_logging import mask_id

logger = logging.getLogger(__name__)


def _to_config(attachment: GroupDiscordServerORM) -> DiscordAttachmentConfig:
    return DiscordAttachmentConfig(
        attachment_id=attachment.id,
        group_id=attachment.group_id,
        discord_server_id=attachment.discord_server_id,
        auto_assign_roles=attachment.auto_assign_roles,
        role_ids=[role.discord_role_id for role in attachment.roles],
    )


class DiscordService:
    """Service for linking groups to Discord servers."""

    def __init__(self, session: AsyncSession, cache: GroupCache) -> None:
        """Initialize service with database session and cache."""
        self.session = session
        self.cache = cache
        self.server_repo = DiscordServerRepository(session)
        self.role_repo = DiscordServerRoleRepository(session)
        self.invite_repo = DiscordInviteRepository(session)
        self.group_repo = GroupRepository(session)

    async def _require_manager(self, group_id: UUID, requester_id: str, is_system_admin: bool) -> None:
        group = await self.group_repo.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can manage Discord servers")

    async def _get_attachment_or_raise(self, attachment_id: UUID) -> GroupDiscordServerORM:
        attachment = await self.server_repo.get_with_roles(attachment_id)
        if attachment is None:
            raise DiscordAttachmentNotFoundError(attachment_id)
        return attachment

    async def _get_attachment(self, attachment_id: UUID) -> DiscordServerAttachment:
        return DiscordServerAttachment.model_validate(await self._get_attachment_or_raise(attachment_id))

    # =========================================================================
    # Attachments
    # =========================================================================

    async def attach_discord_server(
        self,
        data: DiscordServerAttach,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> DiscordServerAttachment:
        """Link a Discord server to a group.

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
            DuplicateError: If the server is already linked to the group
        """
        await self._require_manager(data.group_id, requester_id, is_system_admin)

        try:
            attachment = await self.server_repo.create(
                group_id=data.group_id,
                discord_server_id=data.discord_server_id,
                auto_invite=data.auto_invite,
                auto_assign_roles=data.auto_assign_roles,
            )
        except ConflictError as e:
            raise DuplicateError("Discord server is already attached to this group") from e

        await self.session.commit()
        await self.cache.invalidate_auto_invite_groups()

        logger.info("Discord server attached to group %s by %s", data.group_id, mask_id(requester_id))
        return await self._get_attachment(attachment.id)

    async def get_discord_servers(self, group_id: UUID) -> list[DiscordServerAttachment]:
        """List a group's Discord server attachments with their roles."""
        return [
            DiscordServerAttachment.model_validate(a)
            for a in await self.server_repo.list_by_group(group_id)
        ]

    async def update_discord_server_attachment(
        self,
        attachment_id: UUID,
        data: DiscordServerAttachmentUpdate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> DiscordServerAttachment:
        """Change the auto-invite or role-assignment flags of an attachment.

        Raises:
            DiscordAttachmentNotFoundError: If the attachment does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        attachment = await self._get_attachment_or_raise(attachment_id)
        await self._require_manager(attachment.group_id, requester_id, is_system_admin)

        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if updates:
            await self.server_repo.update(attachment_id, **updates)
            await self.session.commit()
            await self.cache.invalidate_auto_invite_groups()

        return await self._get_attachment(attachment_id)

    async def detach_discord_server(
        self,
        attachment_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Unlink a Discord server from a group.

        Raises:
            DiscordAttachmentNotFoundError: If the attachment does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        attachment = await self._get_attachment_or_raise(attachment_id)
        await self._require_manager(attachment.group_id, requester_id, is_system_admin)

        await self.server_repo.delete(attachment_id)
        await self.session.commit()
        await self.cache.invalidate_auto_invite_groups()

        logger.info("Discord server detached from group %s", attachment.group_id)

    # =========================================================================
    # Roles
    # =========================================================================

    async def assign_role_to_discord_server(
        self,
        attachment_id: UUID,
        data: DiscordRoleAssign,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> DiscordServerRole:
        """Hand out a Discord role through an attachment.

        Raises:
            DiscordAttachmentNotFoundError: If the attachment does not exist
            PermissionDeniedError: If the requester is not the owner
            DuplicateError: If the role is already assigned
        """
        attachment = await self._get_attachment_or_raise(attachment_id)
        await self._require_manager(attachment.group_id, requester_id, is_system_admin)

        try:
            role = await self.role_repo.create(
                group_discord_server_id=attachment_id,
                discord_role_id=data.discord_role_id,
                role_name=data.role_name,
            )
        except ConflictError as e:
            raise DuplicateError("Role is already assigned to this Discord server") from e

        await self.session.commit()
        await self.cache.invalidate_auto_invite_groups()
        return DiscordServerRole.model_validate(role)

    async def unassign_role_from_discord_server(
        self,
        attachment_id: UUID,
        role_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Stop handing out a Discord role through an attachment.

        Args:
            attachment_id: Attachment UUID
            role_id: Role assignment UUID
            requester_id: Requesting owner
            is_system_admin: Requester is a system admin

        Raises:
            DiscordAttachmentNotFoundError: If the attachment or role assignment does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        attachment = await self._get_attachment_or_raise(attachment_id)
        await self._require_manager(attachment.group_id, requester_id, is_system_admin)

        role = await self.role_repo.get_by_id(role_id)
        if role is None or role.group_discord_server_id != attachment_id:
            raise DiscordAttachmentNotFoundError(role_id, message="Role assignment not found")

        await self.role_repo.delete(role_id)
        await self.session.commit()
        await self.cache.invalidate_auto_invite_groups()

    # =========================================================================
    # Bridge-facing reads and audit
    # =========================================================================

    async def get_discord_server_attachment_config(self, attachment_id: UUID) -> DiscordAttachmentConfig:
        """Get what the bridge needs to act on one attachment.

        Raises:
            DiscordAttachmentNotFoundError: If the attachment does not exist
        """
        return _to_config(await self._get_attachment_or_raise(attachment_id))

    async def get_groups_with_discord_auto_invite(self) -> list[AutoInviteGroup]:
        """List every group with at least one auto-invite attachment.

        Served from the durable cache tier.

        Returns:
            List of AutoInviteGroup ordered by group name
        """
        cached = await self.cache.get_auto_invite_groups()
        if cached is not None:
            return cached

        names: dict[UUID, str] = {}
        configs: dict[UUID, list[DiscordAttachmentConfig]] = defaultdict(list)
        for attachment, group_name in await self.server_repo.list_auto_invite():
            names[attachment.group_id] = group_name
            configs[attachment.group_id].append(_to_config(attachment))

        groups = [
            AutoInviteGroup(group_id=group_id, group_name=name, attachments=configs[group_id])
            for group_id, name in names.items()
        ]
        await self.cache.set_auto_invite_groups(groups)
        return groups

    async def get_groups_by_discord_server(self, discord_server_id: UUID) -> list[DiscordServerGroup]:
        """List the groups linked to a Discord server."""
        return [
            DiscordServerGroup(group_id=group_id, group_name=name)
            for group_id, name in await self.server_repo.list_groups_by_server(discord_server_id)
        ]

    async def insert_discord_invite_audit_records(self, records: list[DiscordInviteAuditCreate]) -> int:
        """Store invite outcomes reported by the bridge.

        Args:
            records: One entry per invite attempt

        Returns:
            Number of records stored

        Raises:
            DiscordAttachmentNotFoundError: If a record names an attachment
                that does not exist or belongs to another group
        """
        if not records:
            return 0

        for attachment_id in {r.group_discord_server_id for r in records}:
            attachment = await self.server_repo.get_by_id(attachment_id)
            expected_groups = {r.group_id for r in records if r.group_discord_server_id == attachment_id}
            if attachment is None or expected_groups != {attachment.group_id}:
                raise DiscordAttachmentNotFoundError(attachment_id)

        inserted = await self.invite_repo.create_many([r.model_dump() for r in records])
        await self.session.commit()

        failures = sum(1 for r in records if not r.success)
        logger.info("Stored %d Discord invite audit record(s), %d failed", inserted, failures)
        return inserted

    async def list_discord_invite_audit(self, group_id: UUID) -> list[DiscordInviteAudit]:
        """List a group's Discord invite audit records, newest first."""
        return [
            DiscordInviteAudit.model_validate(r)
            for r in await self.invite_repo.list_by_group(group_id)
        ]
