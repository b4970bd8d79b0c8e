"""Discord attachment domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class DiscordServerRole(BaseModel):
    """Role handed out through a Discord server attachment."""

    id: UUID
    group_discord_server_id: UUID
    discord_role_id: UUID
    role_name: str
    created_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class DiscordServerAttachment(BaseModel):
    """Discord server linked to a group."""

    id: UUID
    group_id: UUID
    discord_server_id: UUID
    auto_invite: bool = False
    auto_assign_roles: bool = False
    roles: list[DiscordServerRole] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class DiscordAttachmentConfig(BaseModel):
    """What the chat-platform bridge needs to act on one attachment."""

    attachment_id: UUID
    group_id: UUID
    discord_server_id: UUID
    auto_assign_roles: bool
    role_ids: list[UUID] = []


class AutoInviteGroup(BaseModel):
    """Group with at least one auto-invite Discord attachment."""

    group_id: UUID
    group_name: str
    attachments: list[DiscordAttachmentConfig] = []


class DiscordInviteAudit(BaseModel):
    """Audit record of one Discord invite attempt."""

    id: UUID
    group_id: UUID
    group_discord_server_id: UUID
    user_id: str
    discord_user_id: str
    success: bool
    error_message: str | None = None
    assigned_role_ids: list[str] | None = None
    created_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True
