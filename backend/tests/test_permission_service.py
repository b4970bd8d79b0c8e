"""Tests for the permission catalogue and effective-permission resolution."""

from uuid import uuid4

import pytest

from groups_api.exceptions import (
    DuplicateError,
    GroupPermissionNotFoundError,
    PermissionCategoryNotFoundError,
    PermissionDeniedError,
    PermissionNotFoundError,
    ValidationError,
)
from groups_api.models.domain.permission import PermissionSource, PermissionTarget
from groups_api.models.dto.permission import (
    AttachPermission,
    GroupPermissionUpdate,
    GroupScopedPermissionCreate,
    PermissionCategoryCreate,
    PermissionCategoryUpdate,
    PermissionCreate,
    PermissionUpdate,
)
from groups_api.services.permission_service import PermissionService

from conftest import SYSTEM_ADMIN


@pytest.fixture
def permission_service(session, cache, settings):
    return PermissionService(session, cache, settings)


async def _global(service, urn="urn:app:fleet:read", name="Fleet read", category_id=None):
    return await service.create_permission(
        PermissionCreate(urn=urn, name=name, category_id=category_id), SYSTEM_ADMIN, True
    )


async def _attach(service, group_id, permission_id, target=PermissionTarget.ALL_MEMBERS, requester="owner-1"):
    return await service.attach_permission_to_group(
        AttachPermission(group_id=group_id, permission_id=permission_id, target_type=target), requester
    )


@pytest.fixture
def staffed_group(make_group, group_service):
    """Group with an owner, an admin and a plain member."""

    async def _make(name=None):
        group = await make_group("owner-1", name=name)
        await group_service.join_group(group.id, "admin-1")
        await group_service.join_group(group.id, "member-1")
        await group_service.add_admin(group.id, "owner-1", "admin-1")
        return group

    return _make


class TestPermissionCatalogue:
    """Tests for system-admin-managed permissions and categories."""

    @pytest.mark.asyncio
    async def test_catalogue_writes_need_system_admin(self, permission_service):
        with pytest.raises(PermissionDeniedError):
            await permission_service.create_permission_category(
                PermissionCategoryCreate(name="Fleet"), "user-1"
            )
        with pytest.raises(PermissionDeniedError):
            await permission_service.create_permission(
                PermissionCreate(urn="urn:app:x", name="X"), "user-1"
            )

    @pytest.mark.asyncio
    async def test_permission_with_category(self, permission_service):
        category = await permission_service.create_permission_category(
            PermissionCategoryCreate(name="Fleet"), SYSTEM_ADMIN, True
        )

        permission = await _global(permission_service, category_id=category.id)

        assert permission.category.name == "Fleet"
        listed = await permission_service.list_permissions(category_id=category.id)
        assert [p.urn for p in listed] == ["urn:app:fleet:read"]

    @pytest.mark.asyncio
    async def test_duplicate_urn_rejected(self, permission_service):
        await _global(permission_service)

        with pytest.raises(DuplicateError):
            await _global(permission_service, name="Other")

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, permission_service):
        with pytest.raises(PermissionCategoryNotFoundError):
            await _global(permission_service, category_id=uuid4())

    @pytest.mark.asyncio
    async def test_update_can_clear_category(self, permission_service):
        category = await permission_service.create_permission_category(
            PermissionCategoryCreate(name="Fleet"), SYSTEM_ADMIN, True
        )
        permission = await _global(permission_service, category_id=category.id)

        updated = await permission_service.update_permission(
            permission.id, PermissionUpdate(category_id=None), SYSTEM_ADMIN, True
        )

        assert updated.category_id is None
        assert updated.category is None

    @pytest.mark.asyncio
    async def test_deleting_category_uncategorises_permissions(self, permission_service):
        category = await permission_service.create_permission_category(
            PermissionCategoryCreate(name="Fleet"), SYSTEM_ADMIN, True
        )
        permission = await _global(permission_service, category_id=category.id)

        await permission_service.delete_permission_category(category.id, SYSTEM_ADMIN, True)

        reloaded = await permission_service.get_permission(permission.id)
        assert reloaded.category_id is None

    @pytest.mark.asyncio
    async def test_duplicate_category_name(self, permission_service):
        await permission_service.create_permission_category(PermissionCategoryCreate(name="Fleet"), SYSTEM_ADMIN, True)
        other = await permission_service.create_permission_category(
            PermissionCategoryCreate(name="Industry"), SYSTEM_ADMIN, True
        )

        with pytest.raises(DuplicateError):
            await permission_service.update_permission_category(
                other.id, PermissionCategoryUpdate(name="Fleet"), SYSTEM_ADMIN, True
            )

    @pytest.mark.asyncio
    async def test_missing_permission(self, permission_service):
        with pytest.raises(PermissionNotFoundError):
            await permission_service.get_permission(uuid4())


class TestGroupAttachments:
    """Tests for attaching permissions to groups."""

    @pytest.mark.asyncio
    async def test_only_owner_attaches(self, permission_service, staffed_group):
        group = await staffed_group()
        permission = await _global(permission_service)

        with pytest.raises(PermissionDeniedError):
            await _attach(permission_service, group.id, permission.id, requester="admin-1")

    @pytest.mark.asyncio
    async def test_attach_twice_rejected(self, permission_service, staffed_group):
        group = await staffed_group()
        permission = await _global(permission_service)
        attached = await _attach(permission_service, group.id, permission.id)

        assert attached.group_name == group.name
        assert attached.permission.urn == "urn:app:fleet:read"
        with pytest.raises(DuplicateError):
            await _attach(permission_service, group.id, permission.id)

    @pytest.mark.asyncio
    async def test_attach_unknown_permission(self, permission_service, staffed_group):
        group = await staffed_group()

        with pytest.raises(PermissionNotFoundError):
            await _attach(permission_service, group.id, uuid4())

    @pytest.mark.asyncio
    async def test_custom_fields_rejected_on_global_attachment(self, permission_service, staffed_group):
        group = await staffed_group()
        permission = await _global(permission_service)
        attached = await _attach(permission_service, group.id, permission.id)

        with pytest.raises(ValidationError):
            await permission_service.update_group_permission(
                attached.id, GroupPermissionUpdate(custom_name="Renamed"), "owner-1"
            )

    @pytest.mark.asyncio
    async def test_group_scoped_permission(self, permission_service, staffed_group):
        group = await staffed_group()

        scoped = await permission_service.create_group_scoped_permission(
            GroupScopedPermissionCreate(
                group_id=group.id,
                urn="urn:group:doors:open",
                name="Open doors",
                target_type=PermissionTarget.ALL_MEMBERS,
            ),
            "owner-1",
        )

        assert scoped.permission_id is None
        assert scoped.custom_urn == "urn:group:doors:open"
        listed = await permission_service.list_group_permissions(group.id)
        assert [gp.id for gp in listed] == [scoped.id]

        with pytest.raises(DuplicateError):
            await permission_service.create_group_scoped_permission(
                GroupScopedPermissionCreate(
                    group_id=group.id,
                    urn="urn:group:doors:open",
                    name="Again",
                    target_type=PermissionTarget.ALL_MEMBERS,
                ),
                "owner-1",
            )

    @pytest.mark.asyncio
    async def test_remove_attachment(self, permission_service, staffed_group):
        group = await staffed_group()
        permission = await _global(permission_service)
        attached = await _attach(permission_service, group.id, permission.id)

        await permission_service.remove_permission_from_group(attached.id, "owner-1")

        assert await permission_service.list_group_permissions(group.id) == []
        with pytest.raises(GroupPermissionNotFoundError):
            await permission_service.remove_permission_from_group(attached.id, "owner-1")


class TestTargetTypes:
    """Which roles receive a permission for each target type."""

    @pytest.mark.parametrize(
        "target,expected",
        [
            (PermissionTarget.ALL_MEMBERS, {"owner-1", "admin-1", "member-1"}),
            (PermissionTarget.ALL_ADMINS, {"admin-1"}),
            (PermissionTarget.OWNER_ONLY, {"owner-1"}),
            (PermissionTarget.OWNER_AND_ADMINS, {"owner-1", "admin-1"}),
        ],
    )
    @pytest.mark.asyncio
    async def test_grants_by_role(self, permission_service, staffed_group, target, expected):
        group = await staffed_group()
        permission = await _global(permission_service)
        await _attach(permission_service, group.id, permission.id, target=target)

        holders = {
            user_id
            for user_id in ("owner-1", "admin-1", "member-1")
            if await permission_service.get_user_permissions(user_id)
        }

        assert holders == expected

    @pytest.mark.parametrize(
        "target,is_owner,is_admin,granted",
        [
            (PermissionTarget.ALL_ADMINS, True, False, False),
            (PermissionTarget.OWNER_ONLY, False, True, False),
            (PermissionTarget.OWNER_AND_ADMINS, False, False, False),
            (PermissionTarget.ALL_MEMBERS, False, False, True),
        ],
    )
    def test_grant_table(self, target, is_owner, is_admin, granted):
        assert target.grants(is_owner=is_owner, is_admin=is_admin) is granted


class TestResolution:
    """Tests for a user's effective permissions."""

    @pytest.mark.asyncio
    async def test_first_grant_of_a_urn_wins(self, permission_service, staffed_group, group_service):
        """A URN granted by two groups is listed once."""
        first = await staffed_group(name="First")
        second = await staffed_group(name="Second")
        permission = await _global(permission_service)
        await _attach(permission_service, first.id, permission.id)
        await _attach(permission_service, second.id, permission.id)

        resolved = await permission_service.get_user_permissions("member-1")

        assert [p.urn for p in resolved] == ["urn:app:fleet:read"]
        assert resolved[0].group_id == first.id
        assert resolved[0].source == PermissionSource.GLOBAL

    @pytest.mark.asyncio
    async def test_group_scoped_permissions_resolved(self, permission_service, staffed_group):
        group = await staffed_group()
        await permission_service.create_group_scoped_permission(
            GroupScopedPermissionCreate(
                group_id=group.id,
                urn="urn:group:doors:open",
                name="Open doors",
                target_type=PermissionTarget.OWNER_AND_ADMINS,
            ),
            "owner-1",
        )

        admin_permissions = await permission_service.get_user_permissions("admin-1")
        member_permissions = await permission_service.get_user_permissions("member-1")

        assert [p.source for p in admin_permissions] == [PermissionSource.GROUP_SCOPED]
        assert admin_permissions[0].group_name == group.name
        assert member_permissions == []

    @pytest.mark.asyncio
    async def test_non_member_has_nothing(self, permission_service):
        assert await permission_service.get_user_permissions("stranger") == []

    @pytest.mark.asyncio
    async def test_attach_invalidates_cached_permissions(self, permission_service, staffed_group, cache):
        group = await staffed_group()
        assert await permission_service.get_user_permissions("member-1") == []
        assert await cache.get_user_permissions("member-1") == []

        permission = await _global(permission_service)
        await _attach(permission_service, group.id, permission.id)

        assert await cache.get_user_permissions("member-1") is None
        resolved = await permission_service.get_user_permissions("member-1")
        assert [p.urn for p in resolved] == ["urn:app:fleet:read"]

    @pytest.mark.asyncio
    async def test_target_change_invalidates(self, permission_service, staffed_group):
        group = await staffed_group()
        permission = await _global(permission_service)
        attached = await _attach(permission_service, group.id, permission.id)
        assert await permission_service.get_user_permissions("member-1") != []

        await permission_service.update_group_permission(
            attached.id, GroupPermissionUpdate(target_type=PermissionTarget.OWNER_ONLY), "owner-1"
        )

        assert await permission_service.get_user_permissions("member-1") == []

    @pytest.mark.asyncio
    async def test_leaving_drops_permissions(self, permission_service, staffed_group, group_service):
        group = await staffed_group()
        permission = await _global(permission_service)
        await _attach(permission_service, group.id, permission.id)
        assert await permission_service.get_user_permissions("member-1") != []

        await group_service.leave_group(group.id, "member-1")

        assert await permission_service.get_user_permissions("member-1") == []

    @pytest.mark.asyncio
    async def test_promotion_changes_admin_grants(self, permission_service, staffed_group, group_service):
        group = await staffed_group()
        permission = await _global(permission_service)
        await _attach(permission_service, group.id, permission.id, target=PermissionTarget.ALL_ADMINS)
        assert await permission_service.get_user_permissions("member-1") == []

        await group_service.add_admin(group.id, "owner-1", "member-1")

        assert len(await permission_service.get_user_permissions("member-1")) == 1

    @pytest.mark.asyncio
    async def test_global_rename_reaches_members(self, permission_service, staffed_group):
        group = await staffed_group()
        permission = await _global(permission_service)
        await _attach(permission_service, group.id, permission.id)
        await permission_service.get_user_permissions("member-1")

        await permission_service.update_permission(
            permission.id, PermissionUpdate(name="Fleet access"), SYSTEM_ADMIN, True
        )

        resolved = await permission_service.get_user_permissions("member-1")
        assert resolved[0].name == "Fleet access"


class TestGroupMemberPermissions:
    """Tests for the per-group bulk views."""

    @pytest.mark.asyncio
    async def test_member_permissions_filtered_to_group(self, permission_service, staffed_group):
        first = await staffed_group(name="First")
        second = await staffed_group(name="Second")
        read = await _global(permission_service, urn="urn:app:read", name="Read")
        write = await _global(permission_service, urn="urn:app:write", name="Write")
        await _attach(permission_service, first.id, read.id)
        await _attach(permission_service, second.id, write.id)

        by_user = await permission_service.get_group_member_permissions(first.id)

        assert set(by_user) == {"owner-1", "admin-1", "member-1"}
        assert [p.urn for p in by_user["member-1"]] == ["urn:app:read"]

    @pytest.mark.asyncio
    async def test_multi_group_view(self, permission_service, staffed_group):
        first = await staffed_group(name="First")
        second = await staffed_group(name="Second")
        read = await _global(permission_service, urn="urn:app:read", name="Read")
        write = await _global(permission_service, urn="urn:app:write", name="Write")
        await _attach(permission_service, first.id, read.id)
        await _attach(permission_service, second.id, write.id)

        by_user = await permission_service.get_multi_group_member_permissions([first.id, second.id])

        assert sorted(p.urn for p in by_user["member-1"]) == ["urn:app:read", "urn:app:write"]

    @pytest.mark.asyncio
    async def test_empty_group_list(self, permission_service):
        assert await permission_service.get_multi_group_member_permissions([]) == {}
