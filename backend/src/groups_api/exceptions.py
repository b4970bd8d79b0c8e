"""Domain-specific exceptions for the groups API.

Every operation reports failures by raising one of these typed errors. The
HTTP/RPC layer in front of the engine maps the base classes to status codes:

- NotFoundError -> 404
- PermissionDeniedError -> 403
- ConflictError -> 409
- GoneError -> 410
- InvalidStateError -> 409/422
- ValidationError -> 400
"""

from typing import Any


class GroupsAPIError(Exception):
    """Base exception for all groups API errors."""

    def __init__(self, message: str = "An error occurred", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(GroupsAPIError):
    """Base class for resource not found errors."""

    entity = "Resource"

    def __init__(self, entity_id: Any = None, message: str | None = None) -> None:
        details = {"id": str(entity_id)} if entity_id is not None else {}
        super().__init__(message or f"{self.entity} not found", details)


class CategoryNotFoundError(NotFoundError):
    """Raised when a category cannot be found."""

    entity = "Category"


class GroupNotFoundError(NotFoundError):
    """Raised when a group cannot be found."""

    entity = "Group"


class InvitationNotFoundError(NotFoundError):
    """Raised when an invitation cannot be found."""

    entity = "Invitation"


class InviteCodeNotFoundError(NotFoundError):
    """Raised when an invite code cannot be found."""

    entity = "Invite code"


class JoinRequestNotFoundError(NotFoundError):
    """Raised when a join request cannot be found."""

    entity = "Join request"


class PermissionCategoryNotFoundError(NotFoundError):
    """Raised when a permission category cannot be found."""

    entity = "Permission category"


class PermissionNotFoundError(NotFoundError):
    """Raised when a global permission cannot be found."""

    entity = "Permission"


class GroupPermissionNotFoundError(NotFoundError):
    """Raised when a group permission attachment cannot be found."""

    entity = "Group permission"


class DerivedRuleNotFoundError(NotFoundError):
    """Raised when a derived group rule cannot be found."""

    entity = "Derived rule"


class DiscordAttachmentNotFoundError(NotFoundError):
    """Raised when a Discord server attachment or role assignment cannot be found."""

    entity = "Discord server attachment"


class UserNotFoundError(NotFoundError):
    """Raised when a display name does not resolve to a user."""

    entity = "User"


# =============================================================================
# Permission Errors (403)
# =============================================================================


class PermissionDeniedError(GroupsAPIError):
    """Raised when the requester lacks the role required for an operation."""

    def __init__(self, message: str = "Access denied", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(GroupsAPIError):
    """Base class for uniqueness violations."""

    pass


class AlreadyMemberError(ConflictError):
    """Raised when a user is already a member of the group."""

    def __init__(self, group_id: Any = None) -> None:
        details = {"group_id": str(group_id)} if group_id is not None else {}
        super().__init__("Already a member of this group", details)


class DuplicateError(ConflictError):
    """Raised when a named resource or pending request already exists."""

    pass


# =============================================================================
# Lifecycle Errors
# =============================================================================


class InvalidStateError(GroupsAPIError):
    """Raised when an operation is not valid for the current lifecycle state."""

    pass


class GoneError(InvalidStateError):
    """Raised when a time-limited resource has expired."""

    pass


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(GroupsAPIError):
    """Raised for malformed input."""

    pass
