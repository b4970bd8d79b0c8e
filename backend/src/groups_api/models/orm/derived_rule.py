"""Derived group rule ORM model."""

from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groups_api.models.orm.base import Base, JSONType, TimestampMixin, UUIDMixin


class DerivedGroupRuleORM(Base, UUIDMixin, TimestampMixin):
    """Rule computing the membership of a derived group."""

    __tablename__ = "derived_group_rules"

    derived_group_id: Mapped[UUID] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rule_type: Mapped[str] = mapped_column(String(30), nullable=False)
    # List of source group UUIDs as strings
    source_group_ids: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    condition_rules: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    derived_group: Mapped["GroupORM"] = relationship("GroupORM", back_populates="derived_rules")
