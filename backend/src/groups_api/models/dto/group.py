"""Group DTOs."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from groups_api.models.domain.category import Category, Visibility
from groups_api.models.domain.group import Group, GroupType, JoinMode


class GroupCreate(BaseModel):
    """Create group request."""

    category_id: UUID
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    visibility: Visibility = Visibility.PUBLIC
    join_mode: JoinMode = JoinMode.OPEN
    group_type: GroupType = GroupType.STANDARD


class GroupUpdate(BaseModel):
    """Update group request."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    visibility: Visibility | None = None
    join_mode: JoinMode | None = None
    category_id: UUID | None = None


class GroupListFilters(BaseModel):
    """Filters for listing groups."""

    category_id: UUID | None = None
    visibility: Visibility | None = None
    join_mode: JoinMode | None = None
    search: str | None = Field(default=None, max_length=200)
    my_groups: bool = False


class GroupWithDetails(Group):
    """Group with category and the requester's standing."""

    category: Category | None = None
    member_count: int = 0
    is_owner: bool = False
    is_admin: bool = False
    is_member: bool = False
    admin_user_ids: list[str] = []


class GroupMembershipSummary(BaseModel):
    """One of a user's memberships."""

    group_id: UUID
    group_name: str
    category_name: str
    is_owner: bool
    is_admin: bool
    joined_at: datetime
