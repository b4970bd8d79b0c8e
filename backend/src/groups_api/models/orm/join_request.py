"""Join request ORM model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from groups_api.models.orm.base import Base, CreatedAtMixin, UTCDateTime, UUIDMixin


class GroupJoinRequestORM(Base, UUIDMixin, CreatedAtMixin):
    """Request to join an approval-mode group."""

    __tablename__ = "group_join_requests"
    __table_args__ = (
        # At most one pending request per user per group
        Index(
            "uq_group_join_request_pending",
            "group_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    responded_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
