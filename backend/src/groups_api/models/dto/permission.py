"""Permission catalogue DTOs."""

from uuid import UUID

from pydantic import BaseModel, Field

from groups_api.models.domain.permission import PermissionTarget, UserPermission

URN_PATTERN = r"^urn:[A-Za-z0-9][A-Za-z0-9_.\-]*(:[A-Za-z0-9_.\-]+)+$"


class PermissionCategoryCreate(BaseModel):
    """Create permission category request."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class PermissionCategoryUpdate(BaseModel):
    """Update permission category request."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class PermissionCreate(BaseModel):
    """Create global permission request."""

    urn: str = Field(max_length=500, pattern=URN_PATTERN)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    category_id: UUID | None = None


class PermissionUpdate(BaseModel):
    """Update global permission request."""

    urn: str | None = Field(default=None, max_length=500, pattern=URN_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    category_id: UUID | None = None


class AttachPermission(BaseModel):
    """Attach a global permission to a group."""

    group_id: UUID
    permission_id: UUID
    target_type: PermissionTarget


class GroupScopedPermissionCreate(BaseModel):
    """Create a permission that only exists within one group."""

    group_id: UUID
    urn: str = Field(max_length=500, pattern=URN_PATTERN)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    target_type: PermissionTarget


class GroupPermissionUpdate(BaseModel):
    """Update a group permission attachment.

    Custom fields only apply to group-scoped permissions.
    """

    target_type: PermissionTarget | None = None
    custom_urn: str | None = Field(default=None, max_length=500, pattern=URN_PATTERN)
    custom_name: str | None = Field(default=None, min_length=1, max_length=255)
    custom_description: str | None = Field(default=None, max_length=2000)


class MemberPermissionsResponse(BaseModel):
    """Resolved permissions keyed by user id."""

    user_permissions: dict[str, list[UserPermission]] = {}
