"""Group ORM model."""

from uuid import UUID

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groups_api.models.orm.base import Base, TimestampMixin, UUIDMixin


class GroupORM(Base, UUIDMixin, TimestampMixin):
    """Group database model."""

    __tablename__ = "groups"
    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_group_name_per_category"),
    )

    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    visibility: Mapped[str] = mapped_column(String(20), default="public", nullable=False, index=True)
    join_mode: Mapped[str] = mapped_column(String(20), default="open", nullable=False)
    group_type: Mapped[str] = mapped_column(String(20), default="standard", nullable=False)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Relationships
    category: Mapped["CategoryORM"] = relationship("CategoryORM", back_populates="groups")
    members: Mapped[list["GroupMemberORM"]] = relationship(
        "GroupMemberORM", cascade="all, delete-orphan", passive_deletes=True
    )
    admins: Mapped[list["GroupAdminORM"]] = relationship(
        "GroupAdminORM", cascade="all, delete-orphan", passive_deletes=True
    )
    derived_rules: Mapped[list["DerivedGroupRuleORM"]] = relationship(
        "DerivedGroupRuleORM",
        back_populates="derived_group",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DerivedGroupRuleORM.priority.desc()",
    )
