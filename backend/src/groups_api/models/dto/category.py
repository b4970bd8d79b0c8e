"""Category DTOs."""

from pydantic import BaseModel, Field

from groups_api.models.domain.category import Category, CategoryPermission, Visibility
from groups_api.models.domain.group import Group


class CategoryCreate(BaseModel):
    """Create category request."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    visibility: Visibility = Visibility.PUBLIC
    allow_group_creation: CategoryPermission = CategoryPermission.ANYONE


class CategoryUpdate(BaseModel):
    """Update category request."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    visibility: Visibility | None = None
    allow_group_creation: CategoryPermission | None = None


class CategoryWithGroups(Category):
    """Category with the groups visible to the requester."""

    groups: list[Group] = []
    group_count: int = 0
