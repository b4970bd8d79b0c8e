"""Visibility and role checks for categories and groups.

System admins see everything. Public categories and groups are visible to
every signed-in user; hidden groups only to their members; hidden and
system categories and system groups only to system admins.
"""

from groups_api.models.domain.category import Category, CategoryPermission, Visibility
from groups_api.models.orm.category import CategoryORM
from groups_api.models.orm.group import GroupORM


def can_view_category(category: CategoryORM | Category, user_id: str | None, is_admin: bool) -> bool:
    """Check if a user can see a category."""
    if is_admin:
        return True
    if not user_id:
        return False
    return category.visibility == Visibility.PUBLIC


def can_create_group_in_category(category: CategoryORM, user_id: str | None, is_admin: bool) -> bool:
    """Check if a user can create groups in a category."""
    if not user_id:
        return False
    if category.allow_group_creation == CategoryPermission.ADMIN_ONLY:
        return is_admin
    return True


def can_view_group(group: GroupORM, user_id: str | None, is_admin: bool, is_member: bool) -> bool:
    """Check if a user can see a group."""
    if is_admin:
        return True
    if not user_id:
        return False
    if group.visibility == Visibility.PUBLIC:
        return True
    if group.visibility == Visibility.HIDDEN:
        return is_member
    return False


def can_view_group_members(
    group: GroupORM,
    user_id: str | None,
    is_admin: bool,
    is_member: bool,
    is_owner_or_admin: bool,
) -> bool:
    """Check if a user can list a group's members.

    System groups only expose members to their owner and admins.
    """
    if is_admin:
        return True
    if not user_id:
        return False
    if group.visibility == Visibility.SYSTEM:
        return is_owner_or_admin
    return is_member or is_owner_or_admin


def is_group_owner(group: GroupORM, user_id: str | None) -> bool:
    """Check if a user owns a group."""
    return bool(user_id) and group.owner_id == user_id


def can_manage_group(group: GroupORM, user_id: str | None) -> bool:
    """Owner-only actions: settings, admins, invite codes."""
    return is_group_owner(group, user_id)


def can_moderate_group(group: GroupORM, user_id: str | None, is_group_admin: bool) -> bool:
    """Owner-or-admin actions: members, join requests, invitations."""
    if not user_id:
        return False
    return group.owner_id == user_id or is_group_admin
