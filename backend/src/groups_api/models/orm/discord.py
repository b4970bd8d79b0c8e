"""Discord server attachment ORM models.

These rows record intent only: which servers a group feeds, which roles
to hand out, and the outcome of each invite attempt made by the bridge.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groups_api.models.orm.base import (
    Base,
    CreatedAtMixin,
    JSONType,
    TimestampMixin,
    UUIDMixin,
)


class GroupDiscordServerORM(Base, UUIDMixin, TimestampMixin):
    """Discord server linked to a group."""

    __tablename__ = "group_discord_servers"
    __table_args__ = (
        UniqueConstraint("group_id", "discord_server_id", name="uq_group_discord_server"),
    )

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    discord_server_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    auto_invite: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    auto_assign_roles: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    roles: Mapped[list["GroupDiscordServerRoleORM"]] = relationship(
        "GroupDiscordServerRoleORM",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="GroupDiscordServerRoleORM.created_at",
    )


class GroupDiscordServerRoleORM(Base, UUIDMixin, CreatedAtMixin):
    """Discord role assigned on invite through a server attachment."""

    __tablename__ = "group_discord_server_roles"
    __table_args__ = (
        UniqueConstraint(
            "group_discord_server_id", "discord_role_id", name="uq_group_discord_server_role"
        ),
    )

    group_discord_server_id: Mapped[UUID] = mapped_column(
        ForeignKey("group_discord_servers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    discord_role_id: Mapped[UUID] = mapped_column(nullable=False)
    role_name: Mapped[str] = mapped_column(Text, nullable=False)


class GroupDiscordInviteORM(Base, UUIDMixin, CreatedAtMixin):
    """Audit record of one Discord invite attempt."""

    __tablename__ = "group_discord_invites"

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_discord_server_id: Mapped[UUID] = mapped_column(
        ForeignKey("group_discord_servers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    discord_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_role_ids: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
