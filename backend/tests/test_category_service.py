"""Tests for categories and the visibility rules behind them."""

from uuid import uuid4

import pytest

from groups_api.exceptions import CategoryNotFoundError, DuplicateError, PermissionDeniedError
from groups_api.models.domain.category import CategoryPermission, Visibility
from groups_api.models.dto.category import CategoryCreate, CategoryUpdate
from groups_api.services.category_service import CategoryService

from conftest import SYSTEM_ADMIN


@pytest.fixture
def category_service(session, cache):
    return CategoryService(session, cache)


class TestCategoryWrites:
    """Tests for system-admin-only category management."""

    @pytest.mark.asyncio
    async def test_regular_user_cannot_create(self, category_service):
        with pytest.raises(PermissionDeniedError):
            await category_service.create_category(CategoryCreate(name="Fleet"), "user-1")

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, category_service):
        await category_service.create_category(CategoryCreate(name="Fleet"), SYSTEM_ADMIN, True)

        with pytest.raises(DuplicateError):
            await category_service.create_category(CategoryCreate(name="Fleet"), SYSTEM_ADMIN, True)

    @pytest.mark.asyncio
    async def test_update_missing_category(self, category_service):
        with pytest.raises(CategoryNotFoundError):
            await category_service.update_category(
                uuid4(), CategoryUpdate(name="Other"), SYSTEM_ADMIN, True
            )

    @pytest.mark.asyncio
    async def test_rename_to_taken_name_rejected(self, category_service):
        await category_service.create_category(CategoryCreate(name="Fleet"), SYSTEM_ADMIN, True)
        other = await category_service.create_category(CategoryCreate(name="Industry"), SYSTEM_ADMIN, True)

        with pytest.raises(DuplicateError):
            await category_service.update_category(other.id, CategoryUpdate(name="Fleet"), SYSTEM_ADMIN, True)


class TestCategoryCache:
    """Tests for the edge-cached category list."""

    @pytest.mark.asyncio
    async def test_list_is_cached_and_invalidated_on_write(self, category_service, cache):
        """Writes drop the cached list so the next read sees them."""
        await category_service.create_category(CategoryCreate(name="Fleet"), SYSTEM_ADMIN, True)

        first = await category_service.list_categories("user-1")
        assert [c.name for c in first] == ["Fleet"]
        assert await cache.get_categories() is not None

        await category_service.create_category(CategoryCreate(name="Industry"), SYSTEM_ADMIN, True)
        assert await cache.get_categories() is None

        second = await category_service.list_categories("user-1")
        assert [c.name for c in second] == ["Fleet", "Industry"]

    @pytest.mark.asyncio
    async def test_visibility_filtered_after_cache(self, category_service):
        """One cached list serves admins and regular users differently."""
        await category_service.create_category(CategoryCreate(name="Public"), SYSTEM_ADMIN, True)
        await category_service.create_category(
            CategoryCreate(name="Staff", visibility=Visibility.SYSTEM), SYSTEM_ADMIN, True
        )

        admin_view = await category_service.list_categories(SYSTEM_ADMIN, is_system_admin=True)
        user_view = await category_service.list_categories("user-1")
        anonymous_view = await category_service.list_categories(None)

        assert [c.name for c in admin_view] == ["Public", "Staff"]
        assert [c.name for c in user_view] == ["Public"]
        assert anonymous_view == []


class TestCategoryDetail:
    """Tests for a category with its visible groups."""

    @pytest.mark.asyncio
    async def test_hidden_groups_only_shown_to_members(self, category_service, category, make_group):
        await make_group("owner-1", name="Open Doors")
        await make_group("owner-1", name="Back Room", visibility=Visibility.HIDDEN)

        outsider = await category_service.get_category(category.id, "outsider")
        owner = await category_service.get_category(category.id, "owner-1")

        assert [g.name for g in outsider.groups] == ["Open Doors"]
        assert outsider.group_count == 1
        assert sorted(g.name for g in owner.groups) == ["Back Room", "Open Doors"]

    @pytest.mark.asyncio
    async def test_invisible_category_returns_none(self, category_service):
        hidden = await category_service.create_category(
            CategoryCreate(name="Staff", visibility=Visibility.HIDDEN), SYSTEM_ADMIN, True
        )

        assert await category_service.get_category(hidden.id, "user-1") is None
        assert await category_service.get_category(hidden.id, SYSTEM_ADMIN, True) is not None


class TestCategoryDelete:
    """Tests for cascading category deletion."""

    @pytest.mark.asyncio
    async def test_delete_cascades_to_groups(self, category_service, category, make_group, group_service, cache):
        from groups_api.exceptions import GroupNotFoundError

        group = await make_group("owner-1")
        await group_service.get_group_member_user_ids(group.id)
        assert await cache.get_member_ids(group.id) == ["owner-1"]

        await category_service.delete_category(category.id, SYSTEM_ADMIN, True)

        with pytest.raises(GroupNotFoundError):
            await group_service.get_group(group.id, "owner-1")
        assert await cache.get_member_ids(group.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_category(self, category_service):
        with pytest.raises(CategoryNotFoundError):
            await category_service.delete_category(uuid4(), SYSTEM_ADMIN, True)


class TestGroupCreationPolicy:
    """Tests for the category's group-creation setting."""

    @pytest.mark.asyncio
    async def test_admin_only_category_blocks_users(self, category_service, group_service):
        from groups_api.models.dto.group import GroupCreate

        locked = await category_service.create_category(
            CategoryCreate(name="Official", allow_group_creation=CategoryPermission.ADMIN_ONLY),
            SYSTEM_ADMIN,
            True,
        )

        with pytest.raises(PermissionDeniedError):
            await group_service.create_group(GroupCreate(category_id=locked.id, name="Mine"), "user-1")

        group = await group_service.create_group(
            GroupCreate(category_id=locked.id, name="Mine"), SYSTEM_ADMIN, is_system_admin=True
        )
        assert group.owner_id == SYSTEM_ADMIN
