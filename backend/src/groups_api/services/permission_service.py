"""Permission catalogue and resolution service."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.config import Settings, get_settings
from groups_api.exceptions import (
    ConflictError,
    DuplicateError,
    GroupNotFoundError,
    GroupPermissionNotFoundError,
    PermissionCategoryNotFoundError,
    PermissionDeniedError,
    PermissionNotFoundError,
    ValidationError,
)
from groups_api.models.domain.permission import (
    GroupPermission,
    Permission,
    PermissionCategory,
    PermissionSource,
    PermissionTarget,
    UserPermission,
)
from groups_api.models.dto.permission import (
    AttachPermission,
    GroupPermissionUpdate,
    GroupScopedPermissionCreate,
    PermissionCategoryCreate,
    PermissionCategoryUpdate,
    PermissionCreate,
    PermissionUpdate,
)
from groups_api.models.orm.group import GroupORM
from groups_api.models.orm.permission import GroupPermissionORM
from groups_api.repositories.group_repository import GroupRepository
from groups_api.repositories.membership_repository import (
    GroupAdminRepository,
    GroupMemberRepository,
)
from groups_api.repositories.permission_repository import (
    GroupPermissionRepository,
    PermissionCategoryRepository,
    PermissionRepository,
)
from groups_api.services.access_policy import can_manage_group
from groups_api.services.cache_service import GroupCache
from groups_api.utils.concurrency import gather_bounded
from groups_api.utils.secure_logging import mask_id

logger = logging.getLogger(__name__)


class PermissionService:
    """Service for the permission catalogue and per-user resolution.

    A user's effective permissions are the union of every group permission
    whose target type grants to their role in that group, de-duplicated by
    URN. Results are cached per user in the local tier; every write here
    drops the entries of the users it can affect.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: GroupCache,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service with database session and cache."""
        self.session = session
        self.cache = cache
        self.settings = settings or get_settings()
        self.category_repo = PermissionCategoryRepository(session)
        self.permission_repo = PermissionRepository(session)
        self.group_permission_repo = GroupPermissionRepository(session)
        self.group_repo = GroupRepository(session)
        self.member_repo = GroupMemberRepository(session)
        self.admin_repo = GroupAdminRepository(session)

    @staticmethod
    def _require_system_admin(is_system_admin: bool) -> None:
        if not is_system_admin:
            raise PermissionDeniedError("Only system admins can manage the permission catalogue")

    async def _invalidate_groups(self, group_ids: list[UUID]) -> None:
        """Drop the cached permissions of every member of the given groups."""
        user_ids = await self.member_repo.get_user_ids_for_groups(group_ids)
        if user_ids:
            await self.cache.invalidate_users_permissions(user_ids)

    # =========================================================================
    # Permission categories
    # =========================================================================

    async def list_permission_categories(self) -> list[PermissionCategory]:
        """List all permission categories ordered by name."""
        return [PermissionCategory.model_validate(c) for c in await self.category_repo.list_all()]

    async def create_permission_category(
        self,
        data: PermissionCategoryCreate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> PermissionCategory:
        """Create a permission category.

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            DuplicateError: If the name is taken
        """
        self._require_system_admin(is_system_admin)
        if await self.category_repo.get_by_name(data.name) is not None:
            raise DuplicateError(f"Permission category '{data.name}' already exists")

        try:
            category = await self.category_repo.create(name=data.name, description=data.description)
        except ConflictError as e:
            raise DuplicateError(f"Permission category '{data.name}' already exists") from e

        await self.session.commit()
        logger.info("Permission category %s created by %s", category.id, mask_id(requester_id))
        return PermissionCategory.model_validate(category)

    async def update_permission_category(
        self,
        category_id: UUID,
        data: PermissionCategoryUpdate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> PermissionCategory:
        """Update a permission category.

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            PermissionCategoryNotFoundError: If the category does not exist
            DuplicateError: If the new name is taken
        """
        self._require_system_admin(is_system_admin)
        category = await self.category_repo.get_by_id(category_id)
        if category is None:
            raise PermissionCategoryNotFoundError(category_id)

        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in updates and updates["name"] != category.name:
            if await self.category_repo.get_by_name(updates["name"]) is not None:
                raise DuplicateError(f"Permission category '{updates['name']}' already exists")

        try:
            category = await self.category_repo.update(category_id, **updates)
        except ConflictError as e:
            raise DuplicateError("Permission category name already exists") from e

        affected_groups = await self.group_permission_repo.get_group_ids_for_category(category_id)
        await self.session.commit()
        await self._invalidate_groups(affected_groups)

        logger.info("Permission category %s updated by %s", category_id, mask_id(requester_id))
        return PermissionCategory.model_validate(category)

    async def delete_permission_category(
        self,
        category_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Delete a permission category. Its permissions become uncategorised.

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            PermissionCategoryNotFoundError: If the category does not exist
        """
        self._require_system_admin(is_system_admin)
        if await self.category_repo.get_by_id(category_id) is None:
            raise PermissionCategoryNotFoundError(category_id)

        affected_groups = await self.group_permission_repo.get_group_ids_for_category(category_id)
        await self.category_repo.delete(category_id)
        await self.session.commit()
        await self._invalidate_groups(affected_groups)

        logger.info("Permission category %s deleted by %s", category_id, mask_id(requester_id))

    # =========================================================================
    # Global permissions
    # =========================================================================

    async def list_permissions(self, category_id: UUID | None = None) -> list[Permission]:
        """List global permissions ordered by URN, optionally for one category."""
        return [
            Permission.model_validate(p)
            for p in await self.permission_repo.list_with_category(category_id)
        ]

    async def get_permission(self, permission_id: UUID) -> Permission:
        """Get a global permission.

        Raises:
            PermissionNotFoundError: If the permission does not exist
        """
        permission = await self.permission_repo.get_with_category(permission_id)
        if permission is None:
            raise PermissionNotFoundError(permission_id)
        return Permission.model_validate(permission)

    async def create_permission(
        self,
        data: PermissionCreate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> Permission:
        """Create a global permission.

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            PermissionCategoryNotFoundError: If the category does not exist
            DuplicateError: If the URN is taken
        """
        self._require_system_admin(is_system_admin)
        if data.category_id and await self.category_repo.get_by_id(data.category_id) is None:
            raise PermissionCategoryNotFoundError(data.category_id)
        if await self.permission_repo.get_by_urn(data.urn) is not None:
            raise DuplicateError(f"Permission with URN '{data.urn}' already exists")

        try:
            permission = await self.permission_repo.create(
                urn=data.urn,
                name=data.name,
                description=data.description,
                category_id=data.category_id,
                created_by=requester_id,
            )
        except ConflictError as e:
            raise DuplicateError(f"Permission with URN '{data.urn}' already exists") from e

        await self.session.commit()
        logger.info("Permission %s created by %s", data.urn, mask_id(requester_id))
        return await self.get_permission(permission.id)

    async def update_permission(
        self,
        permission_id: UUID,
        data: PermissionUpdate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> Permission:
        """Update a global permission.

        Passing ``category_id`` explicitly as None clears the category.

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            PermissionNotFoundError: If the permission does not exist
            PermissionCategoryNotFoundError: If the new category does not exist
            DuplicateError: If the new URN is taken
        """
        self._require_system_admin(is_system_admin)
        permission = await self.permission_repo.get_by_id(permission_id)
        if permission is None:
            raise PermissionNotFoundError(permission_id)

        updates = data.model_dump(exclude_unset=True)
        for field in ("urn", "name"):
            if field in updates and updates[field] is None:
                del updates[field]

        if updates.get("category_id") and await self.category_repo.get_by_id(updates["category_id"]) is None:
            raise PermissionCategoryNotFoundError(updates["category_id"])
        if "urn" in updates and updates["urn"] != permission.urn:
            if await self.permission_repo.get_by_urn(updates["urn"]) is not None:
                raise DuplicateError(f"Permission with URN '{updates['urn']}' already exists")

        try:
            await self.permission_repo.update(permission_id, **updates)
        except ConflictError as e:
            raise DuplicateError("Permission URN already exists") from e

        affected_groups = await self.group_permission_repo.get_group_ids_for_permission(permission_id)
        await self.session.commit()
        await self._invalidate_groups(affected_groups)

        logger.info("Permission %s updated by %s", permission_id, mask_id(requester_id))
        return await self.get_permission(permission_id)

    async def delete_permission(
        self,
        permission_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Delete a global permission and every group attachment of it.

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            PermissionNotFoundError: If the permission does not exist
        """
        self._require_system_admin(is_system_admin)
        if await self.permission_repo.get_by_id(permission_id) is None:
            raise PermissionNotFoundError(permission_id)

        affected_groups = await self.group_permission_repo.get_group_ids_for_permission(permission_id)
        await self.permission_repo.delete(permission_id)
        await self.session.commit()
        await self._invalidate_groups(affected_groups)

        logger.info("Permission %s deleted by %s", permission_id, mask_id(requester_id))

    # =========================================================================
    # Group permissions
    # =========================================================================

    async def _get_managed_group(self, group_id: UUID, requester_id: str, is_system_admin: bool) -> GroupORM:
        group = await self.group_repo.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can manage group permissions")
        return group

    async def _build_group_permission(self, group_permission_id: UUID) -> GroupPermission:
        gp = await self.group_permission_repo.get_with_details(group_permission_id)
        group = await self.group_repo.get_by_id(gp.group_id)
        return GroupPermission.model_validate(gp).model_copy(
            update={"group_name": group.name if group else None}
        )

    async def attach_permission_to_group(
        self,
        data: AttachPermission,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> GroupPermission:
        """Grant a global permission to a group's members by target type.

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
            PermissionNotFoundError: If the permission does not exist
            DuplicateError: If the permission is already attached
        """
        group = await self._get_managed_group(data.group_id, requester_id, is_system_admin)
        if await self.permission_repo.get_by_id(data.permission_id) is None:
            raise PermissionNotFoundError(data.permission_id)
        if await self.group_permission_repo.get_by_permission(group.id, data.permission_id) is not None:
            raise DuplicateError("Permission is already attached to this group")

        try:
            gp = await self.group_permission_repo.create(
                group_id=group.id,
                permission_id=data.permission_id,
                target_type=data.target_type.value,
                created_by=requester_id,
            )
        except ConflictError as e:
            raise DuplicateError("Permission is already attached to this group") from e

        await self.session.commit()
        await self._invalidate_groups([group.id])

        logger.info("Permission %s attached to group %s", data.permission_id, group.id)
        return await self._build_group_permission(gp.id)

    async def create_group_scoped_permission(
        self,
        data: GroupScopedPermissionCreate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> GroupPermission:
        """Create a permission that exists only within one group.

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
            DuplicateError: If the group already has a permission with that URN
        """
        group = await self._get_managed_group(data.group_id, requester_id, is_system_admin)
        if await self.group_permission_repo.get_by_custom_urn(group.id, data.urn) is not None:
            raise DuplicateError(f"Group already has a permission with URN '{data.urn}'")

        try:
            gp = await self.group_permission_repo.create(
                group_id=group.id,
                custom_urn=data.urn,
                custom_name=data.name,
                custom_description=data.description,
                target_type=data.target_type.value,
                created_by=requester_id,
            )
        except ConflictError as e:
            raise DuplicateError(f"Group already has a permission with URN '{data.urn}'") from e

        await self.session.commit()
        await self._invalidate_groups([group.id])

        logger.info("Group-scoped permission %s created in group %s", data.urn, group.id)
        return await self._build_group_permission(gp.id)

    async def list_group_permissions(self, group_id: UUID) -> list[GroupPermission]:
        """List the permissions attached to a group.

        Raises:
            GroupNotFoundError: If the group does not exist
        """
        group = await self.group_repo.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return [
            GroupPermission.model_validate(gp).model_copy(update={"group_name": group.name})
            for gp in await self.group_permission_repo.list_for_groups([group_id])
        ]

    async def update_group_permission(
        self,
        group_permission_id: UUID,
        data: GroupPermissionUpdate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> GroupPermission:
        """Change the target type or the custom fields of a group permission.

        Raises:
            GroupPermissionNotFoundError: If the attachment does not exist
            PermissionDeniedError: If the requester is not the owner
            ValidationError: If custom fields are set on a global attachment
            DuplicateError: If the new custom URN is taken in the group
        """
        gp = await self.group_permission_repo.get_by_id(group_permission_id)
        if gp is None:
            raise GroupPermissionNotFoundError(group_permission_id)
        await self._get_managed_group(gp.group_id, requester_id, is_system_admin)

        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        custom_fields = {"custom_urn", "custom_name", "custom_description"} & updates.keys()
        if custom_fields and gp.permission_id is not None:
            raise ValidationError("Only group-scoped permissions have custom fields")
        if "custom_urn" in updates and updates["custom_urn"] != gp.custom_urn:
            if await self.group_permission_repo.get_by_custom_urn(gp.group_id, updates["custom_urn"]):
                raise DuplicateError(f"Group already has a permission with URN '{updates['custom_urn']}'")

        try:
            await self.group_permission_repo.update(group_permission_id, **updates)
        except ConflictError as e:
            raise DuplicateError("Group already has a permission with that URN") from e

        await self.session.commit()
        await self._invalidate_groups([gp.group_id])

        logger.info("Group permission %s updated by %s", group_permission_id, mask_id(requester_id))
        return await self._build_group_permission(group_permission_id)

    async def remove_permission_from_group(
        self,
        group_permission_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Detach a permission from a group.

        Raises:
            GroupPermissionNotFoundError: If the attachment does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        gp = await self.group_permission_repo.get_by_id(group_permission_id)
        if gp is None:
            raise GroupPermissionNotFoundError(group_permission_id)
        group_id = gp.group_id
        await self._get_managed_group(group_id, requester_id, is_system_admin)

        await self.group_permission_repo.delete(group_permission_id)
        await self.session.commit()
        await self._invalidate_groups([group_id])

        logger.info("Group permission %s removed by %s", group_permission_id, mask_id(requester_id))

    # =========================================================================
    # Resolution
    # =========================================================================

    async def get_user_permissions(self, user_id: str) -> list[UserPermission]:
        """Get a user's effective permissions across all their groups.

        Args:
            user_id: User ID

        Returns:
            List of UserPermission, one per URN
        """
        cached = await self.cache.get_user_permissions(user_id)
        if cached is not None:
            return cached

        permissions = await self._resolve_user_permissions(user_id)
        await self.cache.set_user_permissions(user_id, permissions)
        return permissions

    async def _resolve_user_permissions(self, user_id: str) -> list[UserPermission]:
        memberships = await self.member_repo.list_by_user(user_id)
        if not memberships:
            return []

        group_ids = [m.group_id for m in memberships]
        groups = await self.group_repo.get_many(group_ids)
        admin_of = await self.admin_repo.get_admin_group_ids(user_id, group_ids)
        attachments = await self.group_permission_repo.list_for_groups(group_ids)

        seen: set[str] = set()
        resolved: list[UserPermission] = []
        for gp in attachments:
            group = groups.get(gp.group_id)
            if group is None:
                continue
            target = PermissionTarget(gp.target_type)
            if not target.grants(is_owner=group.owner_id == user_id, is_admin=gp.group_id in admin_of):
                continue

            entry = self._to_user_permission(gp, group, target)
            if entry is None or entry.urn in seen:
                continue
            seen.add(entry.urn)
            resolved.append(entry)

        return resolved

    @staticmethod
    def _to_user_permission(
        gp: GroupPermissionORM,
        group: GroupORM,
        target: PermissionTarget,
    ) -> UserPermission | None:
        if gp.permission is not None:
            permission = gp.permission
            return UserPermission(
                urn=permission.urn,
                name=permission.name,
                description=permission.description,
                category=(
                    PermissionCategory.model_validate(permission.category)
                    if permission.category
                    else None
                ),
                group_id=group.id,
                group_name=group.name,
                target_type=target,
                source=PermissionSource.GLOBAL,
            )
        if gp.custom_urn and gp.custom_name:
            return UserPermission(
                urn=gp.custom_urn,
                name=gp.custom_name,
                description=gp.custom_description,
                group_id=group.id,
                group_name=group.name,
                target_type=target,
                source=PermissionSource.GROUP_SCOPED,
            )
        return None

    async def _permissions_for_users(self, user_ids: list[str]) -> dict[str, list[UserPermission]]:
        """Resolve many users' permissions, probing the cache concurrently.

        Misses are resolved one at a time because they share one session.
        """
        cached = await gather_bounded(
            user_ids, self.cache.get_user_permissions, self.settings.fanout_concurrency
        )

        result: dict[str, list[UserPermission]] = {}
        for user_id, permissions in zip(user_ids, cached):
            if permissions is None:
                permissions = await self._resolve_user_permissions(user_id)
                await self.cache.set_user_permissions(user_id, permissions)
            result[user_id] = permissions
        return result

    async def get_group_member_permissions(self, group_id: UUID) -> dict[str, list[UserPermission]]:
        """Get the permissions each member of a group holds through that group.

        Args:
            group_id: Group UUID

        Returns:
            Dict mapping user ID to their permissions from this group
        """
        return await self.get_multi_group_member_permissions([group_id])

    async def get_multi_group_member_permissions(
        self, group_ids: list[UUID]
    ) -> dict[str, list[UserPermission]]:
        """Get the permissions members hold through any of the given groups.

        Args:
            group_ids: Group UUIDs

        Returns:
            Dict mapping user ID to their permissions from those groups
        """
        if not group_ids:
            return {}
        wanted = set(group_ids)
        user_ids = sorted(await self.member_repo.get_user_ids_for_groups(list(wanted)))
        by_user = await self._permissions_for_users(user_ids)
        return {
            user_id: [p for p in permissions if p.group_id in wanted]
            for user_id, permissions in by_user.items()
        }
