"""Group invitation ORM model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from groups_api.models.orm.base import Base, CreatedAtMixin, UTCDateTime, UUIDMixin


class GroupInvitationORM(Base, UUIDMixin, CreatedAtMixin):
    """Direct invitation from a group owner or admin to a user."""

    __tablename__ = "group_invitations"
    __table_args__ = (
        # One pending invitation per invitee per group
        Index(
            "uq_group_invitation_pending",
            "group_id",
            "invitee_user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inviter_id: Mapped[str] = mapped_column(String(255), nullable=False)
    invitee_user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    invitee_external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
