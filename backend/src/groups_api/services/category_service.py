"""Category management service."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.exceptions import (
    CategoryNotFoundError,
    ConflictError,
    DuplicateError,
    PermissionDeniedError,
)
from groups_api.models.domain.category import Category
from groups_api.models.domain.group import Group
from groups_api.models.dto.category import CategoryCreate, CategoryUpdate, CategoryWithGroups
from groups_api.repositories.category_repository import CategoryRepository
from groups_api.repositories.group_repository import GroupRepository
from groups_api.repositories.membership_repository import GroupMemberRepository
from groups_api.services.access_policy import can_view_category, can_view_group
from groups_api.services.cache_service import GroupCache
from groups_api.utils.secure_logging import mask_id

logger = logging.getLogger(__name__)


class CategoryService:
    """Service for category operations.

    Writes are reserved for system admins. The full category list is held in
    the edge cache and filtered per requester after the cache.
    """

    def __init__(self, session: AsyncSession, cache: GroupCache) -> None:
        """Initialize service with database session and cache."""
        self.session = session
        self.cache = cache
        self.category_repo = CategoryRepository(session)
        self.group_repo = GroupRepository(session)
        self.member_repo = GroupMemberRepository(session)

    async def list_categories(self, user_id: str | None, is_system_admin: bool = False) -> list[Category]:
        """List the categories visible to a user.

        Args:
            user_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Returns:
            List of categories ordered by name
        """
        categories = await self.cache.get_categories()
        if categories is None:
            rows = await self.category_repo.list_all()
            categories = [Category.model_validate(row) for row in rows]
            await self.cache.set_categories(categories)

        return [c for c in categories if can_view_category(c, user_id, is_system_admin)]

    async def get_category(
        self,
        category_id: UUID,
        user_id: str | None,
        is_system_admin: bool = False,
    ) -> CategoryWithGroups | None:
        """Get a category with the groups the user can see.

        Args:
            category_id: Category UUID
            user_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Returns:
            CategoryWithGroups or None if missing or not visible
        """
        category = await self.category_repo.get_by_id(category_id)
        if category is None or not can_view_category(category, user_id, is_system_admin):
            return None

        groups = await self.group_repo.list_by_category(category_id)
        member_of = (
            await self.member_repo.get_member_group_ids(user_id, [g.id for g in groups])
            if user_id
            else set()
        )
        visible = [
            Group.model_validate(g)
            for g in groups
            if can_view_group(g, user_id, is_system_admin, g.id in member_of)
        ]

        return CategoryWithGroups(
            **Category.model_validate(category).model_dump(),
            groups=visible,
            group_count=len(visible),
        )

    async def create_category(
        self,
        data: CategoryCreate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> Category:
        """Create a category.

        Args:
            data: Category fields
            requester_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Returns:
            Created category

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            DuplicateError: If the name is taken
        """
        if not is_system_admin:
            raise PermissionDeniedError("Only system admins can manage categories")

        if await self.category_repo.get_by_name(data.name) is not None:
            raise DuplicateError(f"Category '{data.name}' already exists")

        try:
            category = await self.category_repo.create(
                name=data.name,
                description=data.description,
                visibility=data.visibility.value,
                allow_group_creation=data.allow_group_creation.value,
            )
        except ConflictError as e:
            raise DuplicateError(f"Category '{data.name}' already exists") from e

        await self.session.commit()
        await self.cache.invalidate_categories()

        logger.info("Category %s created by %s", category.id, mask_id(requester_id))
        return Category.model_validate(category)

    async def update_category(
        self,
        category_id: UUID,
        data: CategoryUpdate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> Category:
        """Update a category.

        Args:
            category_id: Category UUID
            data: Fields to change
            requester_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Returns:
            Updated category

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            CategoryNotFoundError: If the category does not exist
            DuplicateError: If the new name is taken
        """
        if not is_system_admin:
            raise PermissionDeniedError("Only system admins can manage categories")

        category = await self.category_repo.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)

        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in updates and updates["name"] != category.name:
            if await self.category_repo.get_by_name(updates["name"]) is not None:
                raise DuplicateError(f"Category '{updates['name']}' already exists")

        try:
            category = await self.category_repo.update(category_id, **updates)
        except ConflictError as e:
            raise DuplicateError("Category name already exists") from e

        await self.session.commit()
        await self.cache.invalidate_categories()

        logger.info("Category %s updated by %s", category_id, mask_id(requester_id))
        return Category.model_validate(category)

    async def delete_category(
        self,
        category_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Delete a category and, by cascade, all of its groups.

        Args:
            category_id: Category UUID
            requester_id: Requesting user ID
            is_system_admin: Requester is a system admin

        Raises:
            PermissionDeniedError: If the requester is not a system admin
            CategoryNotFoundError: If the category does not exist
        """
        if not is_system_admin:
            raise PermissionDeniedError("Only system admins can manage categories")

        category = await self.category_repo.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)

        group_ids = [g.id for g in await self.group_repo.list_by_category(category_id)]
        affected_users = await self.member_repo.get_user_ids_for_groups(group_ids)

        await self.category_repo.delete(category_id)
        await self.session.commit()

        await self.cache.invalidate_categories()
        if group_ids:
            for group_id in group_ids:
                await self.cache.invalidate_member_ids(group_id)
            await self.cache.invalidate_users_permissions(affected_users)
            await self.cache.invalidate_auto_invite_groups()

        logger.info(
            "Category %s deleted by %s (%d groups)",
            category_id,
            mask_id(requester_id),
            len(group_ids),
        )
