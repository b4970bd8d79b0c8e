"""Category ORM model."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groups_api.models.orm.base import Base, TimestampMixin, UUIDMixin


class CategoryORM(Base, UUIDMixin, TimestampMixin):
    """Category database model."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    visibility: Mapped[str] = mapped_column(String(20), default="public", nullable=False, index=True)
    allow_group_creation: Mapped[str] = mapped_column(String(20), default="anyone", nullable=False)

    # Relationships
    groups: Mapped[list["GroupORM"]] = relationship(
        "GroupORM",
        back_populates="category",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
