"""Services package."""

from groups_api.services.cache_service import GroupCache, get_group_cache
from groups_api.services.category_service import CategoryService
from groups_api.services.derived_group_service import DerivedGroupService
from groups_api.services.discord_service import DiscordService
from groups_api.services.group_service import GroupService
from groups_api.services.invitation_service import InvitationService
from groups_api.services.invite_code_service import InviteCodeService
from groups_api.services.join_request_service import JoinRequestService
from groups_api.services.permission_service import PermissionService

__all__ = [
    "CategoryService",
    "DerivedGroupService",
    "DiscordService",
    "GroupCache",
    "GroupService",
    "InvitationService",
    "InviteCodeService",
    "JoinRequestService",
    "PermissionService",
    "get_group_cache",
]
