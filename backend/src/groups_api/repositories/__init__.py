"""Repositories package."""

from groups_api.repositories.base import BaseRepository
from groups_api.repositories.category_repository import CategoryRepository
from groups_api.repositories.derived_rule_repository import DerivedRuleRepository
from groups_api.repositories.discord_repository import (
    DiscordInviteRepository,
    DiscordServerRepository,
    DiscordServerRoleRepository,
)
from groups_api.repositories.group_repository import GroupRepository
from groups_api.repositories.invitation_repository import InvitationRepository
from groups_api.repositories.invite_code_repository import (
    InviteCodeRepository,
    RedemptionRepository,
)
from groups_api.repositories.join_request_repository import JoinRequestRepository
from groups_api.repositories.membership_repository import (
    GroupAdminRepository,
    GroupMemberRepository,
)
from groups_api.repositories.permission_repository import (
    GroupPermissionRepository,
    PermissionCategoryRepository,
    PermissionRepository,
)

__all__ = [
    "BaseRepository",
    "CategoryRepository",
    "DerivedRuleRepository",
    "DiscordInviteRepository",
    "DiscordServerRepository",
    "DiscordServerRoleRepository",
    "GroupAdminRepository",
    "GroupMemberRepository",
    "GroupPermissionRepository",
    "GroupRepository",
    "InvitationRepository",
    "InviteCodeRepository",
    "JoinRequestRepository",
    "PermissionCategoryRepository",
    "PermissionRepository",
    "RedemptionRepository",
]
