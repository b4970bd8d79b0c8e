"""Permission domain models and target-type grant rules."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel


class PermissionTarget(StrEnum):
    """Which role(s) within a group receive a permission."""

    ALL_MEMBERS = "all_members"
    ALL_ADMINS = "all_admins"
    OWNER_ONLY = "owner_only"
    OWNER_AND_ADMINS = "owner_and_admins"

    def grants(self, is_owner: bool, is_admin: bool) -> bool:
        """Check whether a member with the given role receives this grant.

        Args:
            is_owner: Member owns the group
            is_admin: Member holds an admin designation (owners do not)

        Returns:
            True if the permission applies
        """
        return _TARGET_GRANTS[self](is_owner, is_admin)


# Owner is not implicitly an admin here
_TARGET_GRANTS = {
    PermissionTarget.ALL_MEMBERS: lambda is_owner, is_admin: True,
    PermissionTarget.ALL_ADMINS: lambda is_owner, is_admin: is_admin,
    PermissionTarget.OWNER_ONLY: lambda is_owner, is_admin: is_owner,
    PermissionTarget.OWNER_AND_ADMINS: lambda is_owner, is_admin: is_owner or is_admin,
}


class PermissionSource(StrEnum):
    """Where a resolved permission was defined."""

    GLOBAL = "global"
    GROUP_SCOPED = "group_scoped"


class PermissionCategory(BaseModel):
    """Permission category domain model."""

    id: UUID
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class Permission(BaseModel):
    """Global permission domain model."""

    id: UUID
    urn: str
    name: str
    description: str | None = None
    category_id: UUID | None = None
    category: PermissionCategory | None = None
    created_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class GroupPermission(BaseModel):
    """Permission attached to a group."""

    id: UUID
    group_id: UUID
    group_name: str | None = None
    permission_id: UUID | None = None
    permission: Permission | None = None
    custom_urn: str | None = None
    custom_name: str | None = None
    custom_description: str | None = None
    target_type: PermissionTarget
    created_by: str
    created_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class UserPermission(BaseModel):
    """A permission a user holds through one of their groups."""

    urn: str
    name: str
    description: str | None = None
    category: PermissionCategory | None = None
    group_id: UUID
    group_name: str
    target_type: PermissionTarget
    source: PermissionSource
