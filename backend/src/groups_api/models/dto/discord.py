"""Discord attachment DTOs."""

from uuid import UUID

from pydantic import BaseModel, Field


class DiscordServerAttach(BaseModel):
    """Attach a Discord server to a group."""

    group_id: UUID
    discord_server_id: UUID
    auto_invite: bool = False
    auto_assign_roles: bool = False


class DiscordServerAttachmentUpdate(BaseModel):
    """Update a Discord server attachment."""

    auto_invite: bool | None = None
    auto_assign_roles: bool | None = None


class DiscordRoleAssign(BaseModel):
    """Assign a Discord role to an attachment."""

    discord_role_id: UUID
    role_name: str = Field(min_length=1, max_length=255)


class DiscordInviteAuditCreate(BaseModel):
    """One invite outcome reported by the chat-platform bridge."""

    group_id: UUID
    group_discord_server_id: UUID
    user_id: str = Field(min_length=1, max_length=255)
    discord_user_id: str = Field(min_length=1, max_length=255)
    success: bool
    error_message: str | None = Field(default=None, max_length=2000)
    assigned_role_ids: list[str] | None = None


class DiscordServerGroup(BaseModel):
    """Group attached to a given Discord server."""

    group_id: UUID
    group_name: str
