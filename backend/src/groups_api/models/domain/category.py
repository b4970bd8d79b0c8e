"""Category domain model."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel


class Visibility(StrEnum):
    """Visibility level of a category or group."""

    PUBLIC = "public"
    HIDDEN = "hidden"
    SYSTEM = "system"


class CategoryPermission(StrEnum):
    """Who may create groups in a category."""

    ANYONE = "anyone"
    ADMIN_ONLY = "admin_only"


class Category(BaseModel):
    """Category domain model."""

    id: UUID
    name: str
    description: str | None = None
    visibility: Visibility = Visibility.PUBLIC
    allow_group_creation: CategoryPermission = CategoryPermission.ANYONE
    created_at: datetime
    updated_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True
