"""Group, membership and ownership service."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.config import Settings, get_settings
from groups_api.exceptions import (
    AlreadyMemberError,
    CategoryNotFoundError,
    ConflictError,
    DuplicateError,
    GroupNotFoundError,
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from groups_api.models.domain.category import Category
from groups_api.models.domain.group import AssignmentType, Group, GroupMember, JoinMode
from groups_api.models.dto.group import (
    GroupCreate,
    GroupListFilters,
    GroupMembershipSummary,
    GroupUpdate,
    GroupWithDetails,
)
from groups_api.models.orm.group import GroupORM
from groups_api.repositories.category_repository import CategoryRepository
from groups_api.repositories.group_repository import GroupRepository
from groups_api.repositories.membership_repository import (
    GroupAdminRepository,
    GroupMemberRepository,
)
from groups_api.services.access_policy import (
    can_create_group_in_category,
    can_manage_group,
    can_moderate_group,
    can_view_group,
    can_view_group_members,
)
from groups_api.services.cache_service import GroupCache
from groups_api.services.character_lookup import CharacterLookup, resolve_display_names
from groups_api.services.membership_writer import MembershipWriter
from groups_api.utils.secure_logging import mask_id
from groups_api.utils.validation import require_text, sanitize_search

logger = logging.getLogger(__name__)


class GroupService:
    """Service for groups, their members and their admins."""

    def __init__(
        self,
        session: AsyncSession,
        cache: GroupCache,
        character_lookup: CharacterLookup | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service with database session and collaborators."""
        self.session = session
        self.cache = cache
        self.character_lookup = character_lookup
        self.settings = settings or get_settings()
        self.category_repo = CategoryRepository(session)
        self.group_repo = GroupRepository(session)
        self.member_repo = GroupMemberRepository(session)
        self.admin_repo = GroupAdminRepository(session)
        self.memberships = MembershipWriter(session, cache)

    async def _get_group_or_raise(self, group_id: UUID) -> GroupORM:
        group = await self.group_repo.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    # =========================================================================
    # Group lifecycle
    # =========================================================================

    async def create_group(self, data: GroupCreate, requester_id: str, is_system_admin: bool = False) -> Group:
        """Create a group owned by the requester.

        The owner is added as the first member.

        Args:
            data: Group fields
            requester_id: Requesting user ID, becomes the owner
            is_system_admin: Requester is a system admin

        Returns:
            Created group

        Raises:
            CategoryNotFoundError: If the category does not exist
            PermissionDeniedError: If the category only allows admins to create groups
            DuplicateError: If the name is taken within the category
        """
        name = require_text(data.name, "name")

        category = await self.category_repo.get_by_id(data.category_id)
        if category is None:
            raise CategoryNotFoundError(data.category_id)
        if not can_create_group_in_category(category, requester_id, is_system_admin):
            raise PermissionDeniedError("Only system admins can create groups in this category")
        if await self.group_repo.get_by_name_in_category(data.category_id, name) is not None:
            raise DuplicateError(f"A group named '{name}' already exists in this category")

        try:
            group = await self.group_repo.create(
                category_id=data.category_id,
                name=name,
                description=data.description,
                visibility=data.visibility.value,
                join_mode=data.join_mode.value,
                group_type=data.group_type.value,
                owner_id=requester_id,
            )
        except ConflictError as e:
            raise DuplicateError(f"A group named '{name}' already exists in this category") from e

        await self.memberships.add(group.id, requester_id, AssignmentType.MANUAL)
        await self.session.commit()
        await self.memberships.invalidate(group.id, requester_id)

        logger.info("Group %s created by %s", group.id, mask_id(requester_id))
        return Group.model_validate(group)

    async def update_group(
        self,
        group_id: UUID,
        data: GroupUpdate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> Group:
        """Update group settings.

        Args:
            group_id: Group UUID
            data: Fields to change
            requester_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Returns:
            Updated group

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
            CategoryNotFoundError: If moving to a category that does not exist
            DuplicateError: If the name is taken within the target category
        """
        group = await self._get_group_or_raise(group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can update the group")

        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in updates:
            updates["name"] = require_text(updates["name"], "name")

        target_category = updates.get("category_id", group.category_id)
        if target_category != group.category_id:
            if await self.category_repo.get_by_id(target_category) is None:
                raise CategoryNotFoundError(target_category)

        target_name = updates.get("name", group.name)
        if target_name != group.name or target_category != group.category_id:
            existing = await self.group_repo.get_by_name_in_category(target_category, target_name)
            if existing is not None and existing.id != group_id:
                raise DuplicateError(f"A group named '{target_name}' already exists in this category")

        try:
            group = await self.group_repo.update(group_id, **updates)
        except ConflictError as e:
            raise DuplicateError(f"A group named '{target_name}' already exists in this category") from e

        member_ids = await self.member_repo.get_user_ids(group_id)
        await self.session.commit()

        # Resolved permissions embed the group name
        if "name" in updates:
            await self.cache.invalidate_users_permissions(member_ids)
            await self.cache.invalidate_auto_invite_groups()

        logger.info("Group %s updated by %s", group_id, mask_id(requester_id))
        return Group.model_validate(group)

    async def delete_group(self, group_id: UUID, requester_id: str, is_system_admin: bool = False) -> None:
        """Delete a group with all of its members, requests and attachments.

        Args:
            group_id: Group UUID
            requester_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        group = await self._get_group_or_raise(group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can delete the group")

        member_ids = await self.member_repo.get_user_ids(group_id)

        await self.group_repo.delete(group_id)
        await self.session.commit()

        await self.memberships.invalidate(group_id, *member_ids)
        await self.cache.invalidate_auto_invite_groups()

        logger.info("Group %s deleted by %s", group_id, mask_id(requester_id))

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_groups(
        self,
        filters: GroupListFilters,
        user_id: str | None,
        is_system_admin: bool = False,
    ) -> list[GroupWithDetails]:
        """List the groups visible to a user.

        Args:
            filters: Category, visibility, join mode, search and my-groups filters
            user_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Returns:
            List of groups with the requester's standing, ordered by name
        """
        my_group_ids = None
        if filters.my_groups:
            if not user_id:
                return []
            my_group_ids = [m.group_id for m in await self.member_repo.list_by_user(user_id)]

        groups = await self.group_repo.list_filtered(
            category_id=filters.category_id,
            visibility=filters.visibility.value if filters.visibility else None,
            join_mode=filters.join_mode.value if filters.join_mode else None,
            search=sanitize_search(filters.search),
            group_ids=my_group_ids,
        )
        if not groups:
            return []

        # Batch lookups (avoids N+1)
        group_ids = [g.id for g in groups]
        member_of = await self.member_repo.get_member_group_ids(user_id, group_ids) if user_id else set()
        admin_of = await self.admin_repo.get_admin_group_ids(user_id, group_ids) if user_id else set()
        member_counts = await self.member_repo.count_by_groups(group_ids)

        return [
            self._build_details(
                group,
                user_id,
                is_member=group.id in member_of,
                is_admin=group.id in admin_of,
                member_count=member_counts.get(group.id, 0),
            )
            for group in groups
            if can_view_group(group, user_id, is_system_admin, group.id in member_of)
        ]

    async def get_group(
        self,
        group_id: UUID,
        user_id: str | None,
        is_system_admin: bool = False,
    ) -> GroupWithDetails:
        """Get a group with its category and the requester's standing.

        Args:
            group_id: Group UUID
            user_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Returns:
            GroupWithDetails

        Raises:
            GroupNotFoundError: If the group does not exist or is not visible
        """
        group = await self.group_repo.get_with_category(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)

        is_member = bool(user_id) and await self.member_repo.is_member(group_id, user_id)
        if not can_view_group(group, user_id, is_system_admin, is_member):
            raise GroupNotFoundError(group_id)

        admin_ids = await self.admin_repo.get_user_ids(group_id)
        member_counts = await self.member_repo.count_by_groups([group_id])

        details = self._build_details(
            group,
            user_id,
            is_member=is_member,
            is_admin=user_id in admin_ids,
            member_count=member_counts.get(group_id, 0),
        )
        details.admin_user_ids = admin_ids
        return details

    def _build_details(
        self,
        group: GroupORM,
        user_id: str | None,
        is_member: bool,
        is_admin: bool,
        member_count: int,
    ) -> GroupWithDetails:
        """Build GroupWithDetails from a GroupORM with its category loaded."""
        return GroupWithDetails(
            **Group.model_validate(group).model_dump(),
            category=Category.model_validate(group.category) if group.category else None,
            member_count=member_count,
            is_owner=bool(user_id) and group.owner_id == user_id,
            is_admin=is_admin,
            is_member=is_member,
        )

    async def get_group_members(
        self,
        group_id: UUID,
        user_id: str | None,
        is_system_admin: bool = False,
    ) -> list[GroupMember]:
        """List a group's members enriched with roles and display names.

        Args:
            group_id: Group UUID
            user_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Returns:
            List of GroupMember in join order

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester may not see the member list
        """
        group = await self._get_group_or_raise(group_id)

        admin_ids = set(await self.admin_repo.get_user_ids(group_id))
        is_member = bool(user_id) and await self.member_repo.is_member(group_id, user_id)
        is_owner_or_admin = bool(user_id) and (group.owner_id == user_id or user_id in admin_ids)
        if not can_view_group_members(group, user_id, is_system_admin, is_member, is_owner_or_admin):
            raise PermissionDeniedError("You cannot view the members of this group")

        members = await self.member_repo.list_by_group(group_id)
        names = await resolve_display_names(
            self.character_lookup,
            [m.user_id for m in members],
            self.settings.fanout_concurrency,
        )

        result = []
        for member in members:
            info = names.get(member.user_id)
            result.append(
                GroupMember(
                    id=member.id,
                    group_id=member.group_id,
                    user_id=member.user_id,
                    assignment_type=member.assignment_type,
                    joined_at=member.joined_at,
                    is_owner=member.user_id == group.owner_id,
                    is_admin=member.user_id in admin_ids,
                    display_name=info.name if info else None,
                    external_id=info.external_id if info else None,
                )
            )
        return result

    async def get_group_member_user_ids(self, group_id: UUID) -> list[str]:
        """Get the member user IDs of a group, served from the local cache.

        Args:
            group_id: Group UUID

        Returns:
            List of user IDs
        """
        cached = await self.cache.get_member_ids(group_id)
        if cached is not None:
            return cached

        user_ids = await self.member_repo.get_user_ids(group_id)
        await self.cache.set_member_ids(group_id, user_ids)
        return user_ids

    async def get_user_memberships(self, user_id: str) -> list[GroupMembershipSummary]:
        """List every group a user belongs to with their role in it.

        Args:
            user_id: User ID

        Returns:
            List of GroupMembershipSummary in join order
        """
        memberships = await self.member_repo.list_by_user(user_id)
        if not memberships:
            return []

        group_ids = [m.group_id for m in memberships]
        groups = await self.group_repo.get_many(group_ids)
        admin_of = await self.admin_repo.get_admin_group_ids(user_id, group_ids)

        summaries = []
        for membership in memberships:
            group = groups.get(membership.group_id)
            if group is None:
                continue
            summaries.append(
                GroupMembershipSummary(
                    group_id=group.id,
                    group_name=group.name,
                    category_name=group.category.name,
                    is_owner=group.owner_id == user_id,
                    is_admin=group.id in admin_of,
                    joined_at=membership.joined_at,
                )
            )
        return summaries

    async def is_group_admin(self, group_id: UUID, user_id: str) -> bool:
        """Check whether a user holds an admin designation in a group."""
        return await self.admin_repo.is_admin(group_id, user_id)

    # =========================================================================
    # Membership
    # =========================================================================

    async def join_group(self, group_id: UUID, user_id: str) -> GroupMember:
        """Join an open group.

        Args:
            group_id: Group UUID
            user_id: Joining user ID

        Returns:
            Created membership

        Raises:
            GroupNotFoundError: If the group does not exist
            InvalidStateError: If the group is not open
            AlreadyMemberError: If the user is already a member
        """
        group = await self._get_group_or_raise(group_id)
        if group.join_mode != JoinMode.OPEN:
            raise InvalidStateError("This group cannot be joined directly")
        if await self.member_repo.is_member(group_id, user_id):
            raise AlreadyMemberError(group_id)

        member = await self.memberships.add(group_id, user_id, AssignmentType.MANUAL)
        await self.session.commit()
        await self.memberships.invalidate(group_id, user_id)

        logger.info("User %s joined group %s", mask_id(user_id), group_id)
        return GroupMember.model_validate(member)

    async def leave_group(self, group_id: UUID, user_id: str) -> None:
        """Leave a group.

        Args:
            group_id: Group UUID
            user_id: Leaving user ID

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the user owns the group or is not a member
        """
        group = await self._get_group_or_raise(group_id)
        if group.owner_id == user_id:
            raise PermissionDeniedError("The owner must transfer ownership before leaving")
        if not await self.member_repo.is_member(group_id, user_id):
            raise PermissionDeniedError("You are not a member of this group")

        await self.memberships.remove(group_id, user_id)
        await self.session.commit()
        await self.memberships.invalidate(group_id, user_id)

        logger.info("User %s left group %s", mask_id(user_id), group_id)

    async def remove_member(
        self,
        group_id: UUID,
        requester_id: str,
        target_user_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Remove another user from a group.

        Args:
            group_id: Group UUID
            requester_id: Requesting owner or admin
            target_user_id: User to remove
            is_system_admin: Requester is a system admin

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not owner/admin or the target is the owner
            InvalidStateError: If the target is not a member
        """
        group = await self._get_group_or_raise(group_id)
        is_admin = await self.admin_repo.is_admin(group_id, requester_id)
        if not (is_system_admin or can_moderate_group(group, requester_id, is_admin)):
            raise PermissionDeniedError("Only the owner or an admin can remove members")
        if target_user_id == group.owner_id:
            raise PermissionDeniedError("The group owner cannot be removed")
        if not await self.member_repo.is_member(group_id, target_user_id):
            raise InvalidStateError("User is not a member of this group")

        await self.memberships.remove(group_id, target_user_id)
        await self.session.commit()
        await self.memberships.invalidate(group_id, target_user_id)

        logger.info(
            "User %s removed from group %s by %s",
            mask_id(target_user_id),
            group_id,
            mask_id(requester_id),
        )

    # =========================================================================
    # Admins and ownership
    # =========================================================================

    async def add_admin(
        self,
        group_id: UUID,
        requester_id: str,
        target_user_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Designate a member as group admin. No-op if already an admin.

        Args:
            group_id: Group UUID
            requester_id: Requesting owner
            target_user_id: Member to promote
            is_system_admin: Requester is a system admin

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
            InvalidStateError: If the target is the owner or not a member
        """
        group = await self._get_group_or_raise(group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can manage admins")
        if target_user_id == group.owner_id:
            raise InvalidStateError("The group owner cannot be designated as admin")
        if not await self.member_repo.is_member(group_id, target_user_id):
            raise InvalidStateError("User must be a member before becoming an admin")
        if await self.admin_repo.is_admin(group_id, target_user_id):
            return

        try:
            await self.admin_repo.create(group_id=group_id, user_id=target_user_id)
        except ConflictError:
            # Lost a race with an identical request
            return

        await self.session.commit()
        await self.cache.invalidate_user_permissions(target_user_id)

        logger.info("User %s made admin of group %s", mask_id(target_user_id), group_id)

    async def remove_admin(
        self,
        group_id: UUID,
        requester_id: str,
        target_user_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Revoke a user's admin designation.

        Args:
            group_id: Group UUID
            requester_id: Requesting owner
            target_user_id: Admin to demote
            is_system_admin: Requester is a system admin

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        group = await self._get_group_or_raise(group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can manage admins")

        if not await self.admin_repo.remove(group_id, target_user_id):
            return

        await self.session.commit()
        await self.cache.invalidate_user_permissions(target_user_id)

        logger.info("User %s is no longer admin of group %s", mask_id(target_user_id), group_id)

    async def transfer_ownership(
        self,
        group_id: UUID,
        requester_id: str,
        new_owner_id: str,
        is_system_admin: bool = False,
    ) -> Group:
        """Hand a group to another member.

        The new owner loses their admin designation before the owner flips,
        and the previous owner is kept on as an admin afterwards.

        Args:
            group_id: Group UUID
            requester_id: Requesting user ID
            new_owner_id: Member who becomes the owner
            is_system_admin: Requester is a system admin

        Returns:
            Updated group

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
            ValidationError: If the new owner already owns the group
            InvalidStateError: If the new owner is not a member
        """
        group = await self._get_group_or_raise(group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can transfer ownership")
        if new_owner_id == group.owner_id:
            raise ValidationError("The new owner already owns this group")
        if not await self.member_repo.is_member(group_id, new_owner_id):
            raise InvalidStateError("The new owner must be a member of the group")

        old_owner_id = group.owner_id

        await self.admin_repo.remove(group_id, new_owner_id)
        group = await self.group_repo.update(group_id, owner_id=new_owner_id)
        if not await self.admin_repo.is_admin(group_id, old_owner_id):
            await self.admin_repo.create(group_id=group_id, user_id=old_owner_id)

        await self.session.commit()
        await self.cache.invalidate_users_permissions([old_owner_id, new_owner_id])

        logger.info(
            "Ownership of group %s transferred from %s to %s",
            group_id,
            mask_id(old_owner_id),
            mask_id(new_owner_id),
        )
        return Group.model_validate(group)
