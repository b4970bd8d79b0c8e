"""Group and membership domain models."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel

from groups_api.models.domain.category import Visibility


class JoinMode(StrEnum):
    """How users can join a group."""

    OPEN = "open"
    APPROVAL = "approval"
    INVITATION_ONLY = "invitation_only"


class GroupType(StrEnum):
    """Whether membership is managed directly or computed from rules."""

    STANDARD = "standard"
    DERIVED = "derived"


class AssignmentType(StrEnum):
    """How a membership row came to exist."""

    MANUAL = "manual"
    INVITED = "invited"
    DERIVED = "derived"


class Group(BaseModel):
    """Group domain model."""

    id: UUID
    category_id: UUID
    name: str
    description: str | None = None
    visibility: Visibility = Visibility.PUBLIC
    join_mode: JoinMode = JoinMode.OPEN
    group_type: GroupType = GroupType.STANDARD
    owner_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class GroupMember(BaseModel):
    """Membership row enriched for display."""

    id: UUID
    group_id: UUID
    user_id: str
    assignment_type: AssignmentType = AssignmentType.MANUAL
    joined_at: datetime
    is_owner: bool = False
    is_admin: bool = False
    display_name: str | None = None
    external_id: str | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class GroupAdmin(BaseModel):
    """Admin designation domain model."""

    id: UUID
    group_id: UUID
    user_id: str
    designated_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True
