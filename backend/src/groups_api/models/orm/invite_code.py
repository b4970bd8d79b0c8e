"""Invite code and redemption ORM models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from groups_api.models.orm.base import Base, CreatedAtMixin, UTCDateTime, UUIDMixin, utcnow


class GroupInviteCodeORM(Base, UUIDMixin, CreatedAtMixin):
    """Reusable invite code database model."""

    __tablename__ = "group_invite_codes"

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_uses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class GroupInviteCodeRedemptionORM(Base, UUIDMixin):
    """Record of a user redeeming an invite code."""

    __tablename__ = "group_invite_code_redemptions"
    __table_args__ = (
        UniqueConstraint("invite_code_id", "user_id", name="uq_invite_code_redemption"),
    )

    invite_code_id: Mapped[UUID] = mapped_column(
        ForeignKey("group_invite_codes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    redeemed_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
