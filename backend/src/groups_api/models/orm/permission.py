"""Permission catalogue ORM models."""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groups_api.models.orm.base import Base, CreatedAtMixin, TimestampMixin, UUIDMixin


class PermissionCategoryORM(Base, UUIDMixin, TimestampMixin):
    """Permission category database model."""

    __tablename__ = "permission_categories"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class PermissionORM(Base, UUIDMixin, TimestampMixin):
    """Global, reusable permission definition."""

    __tablename__ = "permissions"

    urn: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("permission_categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    category: Mapped[PermissionCategoryORM | None] = relationship("PermissionCategoryORM")


class GroupPermissionORM(Base, UUIDMixin, CreatedAtMixin):
    """Permission attached to a group, global or group-scoped."""

    __tablename__ = "group_permissions"
    __table_args__ = (
        UniqueConstraint("group_id", "permission_id", name="uq_group_permission"),
        UniqueConstraint("group_id", "custom_urn", name="uq_group_permission_custom_urn"),
        # Exactly one of the two forms is populated
        CheckConstraint(
            "(permission_id IS NOT NULL AND custom_urn IS NULL AND custom_name IS NULL)"
            " OR (permission_id IS NULL AND custom_urn IS NOT NULL AND custom_name IS NOT NULL)",
            name="ck_group_permission_form",
        ),
    )

    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    permission_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"), nullable=True, index=True
    )
    custom_urn: Mapped[str | None] = mapped_column(String(500), nullable=True)
    custom_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    custom_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_type: Mapped[str] = mapped_column(String(30), nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    permission: Mapped[PermissionORM | None] = relationship("PermissionORM")
