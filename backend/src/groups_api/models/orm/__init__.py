"""SQLAlchemy ORM models."""

from groups_api.models.orm.base import Base
from groups_api.models.orm.category import CategoryORM
from groups_api.models.orm.derived_rule import DerivedGroupRuleORM
from groups_api.models.orm.discord import (
    GroupDiscordInviteORM,
    GroupDiscordServerORM,
    GroupDiscordServerRoleORM,
)
from groups_api.models.orm.group import GroupORM
from groups_api.models.orm.invitation import GroupInvitationORM
from groups_api.models.orm.invite_code import GroupInviteCodeORM, GroupInviteCodeRedemptionORM
from groups_api.models.orm.join_request import GroupJoinRequestORM
from groups_api.models.orm.membership import GroupAdminORM, GroupMemberORM
from groups_api.models.orm.permission import (
    GroupPermissionORM,
    PermissionCategoryORM,
    PermissionORM,
)

__all__ = [
    "Base",
    "CategoryORM",
    "DerivedGroupRuleORM",
    "GroupAdminORM",
    "GroupDiscordInviteORM",
    "GroupDiscordServerORM",
    "GroupDiscordServerRoleORM",
    "GroupInvitationORM",
    "GroupInviteCodeORM",
    "GroupInviteCodeRedemptionORM",
    "GroupJoinRequestORM",
    "GroupMemberORM",
    "GroupORM",
    "GroupPermissionORM",
    "PermissionCategoryORM",
    "PermissionORM",
]
