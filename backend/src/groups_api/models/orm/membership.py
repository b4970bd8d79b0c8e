"""Group membership and admin designation ORM models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from groups_api.models.orm.base import Base, UTCDateTime, UUIDMixin, utcnow


class GroupMemberORM(Base, UUIDMixin):
    """Group membership database model."""

    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
        Index("idx_group_members_user_group", "user_id", "group_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    assignment_type: Mapped[str] = mapped_column(String(20), default="manual", nullable=False)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class GroupAdminORM(Base, UUIDMixin):
    """Group admin designation database model.

    The group owner is never stored here.
    """

    __tablename__ = "group_admins"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_admin"),
        Index("idx_group_admins_user_group", "user_id", "group_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    designated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
