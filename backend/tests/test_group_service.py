"""Tests for group lifecycle, membership and ownership rules."""

from uuid import uuid4

import pytest

from groups_api.exceptions import (
    AlreadyMemberError,
    CategoryNotFoundError,
    DuplicateError,
    GroupNotFoundError,
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from groups_api.models.domain.category import Visibility
from groups_api.models.domain.group import AssignmentType, JoinMode
from groups_api.models.dto.group import GroupCreate, GroupListFilters, GroupUpdate


class TestCreateGroup:
    """Tests for group creation."""

    @pytest.mark.asyncio
    async def test_owner_becomes_first_member(self, make_group, group_service):
        group = await make_group("owner-1")

        members = await group_service.get_group_members(group.id, "owner-1")

        assert [m.user_id for m in members] == ["owner-1"]
        assert members[0].is_owner is True
        assert members[0].is_admin is False
        assert members[0].assignment_type == AssignmentType.MANUAL

    @pytest.mark.asyncio
    async def test_name_unique_within_category(self, make_group):
        await make_group("owner-1", name="Miners")

        with pytest.raises(DuplicateError):
            await make_group("owner-2", name="Miners")

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, group_service, category):
        with pytest.raises(ValidationError):
            await group_service.create_group(GroupCreate(category_id=category.id, name="   "), "owner-1")

    @pytest.mark.asyncio
    async def test_unknown_category(self, group_service):
        with pytest.raises(CategoryNotFoundError):
            await group_service.create_group(GroupCreate(category_id=uuid4(), name="Nowhere"), "owner-1")


class TestUpdateAndDelete:
    """Tests for owner-only group management."""

    @pytest.mark.asyncio
    async def test_only_owner_updates(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(PermissionDeniedError):
            await group_service.update_group(group.id, GroupUpdate(name="Taken Over"), "intruder")

        updated = await group_service.update_group(group.id, GroupUpdate(name="Renamed"), "owner-1")
        assert updated.name == "Renamed"

    @pytest.mark.asyncio
    async def test_rename_collision(self, make_group, group_service):
        await make_group("owner-1", name="First")
        second = await make_group("owner-1", name="Second")

        with pytest.raises(DuplicateError):
            await group_service.update_group(second.id, GroupUpdate(name="First"), "owner-1")

    @pytest.mark.asyncio
    async def test_rename_drops_member_permission_cache(self, make_group, group_service, cache):
        """Resolved permissions carry the group name, so a rename invalidates them."""
        from factories import sample_user_permission

        group = await make_group("owner-1")
        await cache.set_user_permissions("owner-1", [sample_user_permission(group.id)])

        await group_service.update_group(group.id, GroupUpdate(name="Renamed"), "owner-1")

        assert await cache.get_user_permissions("owner-1") is None

    @pytest.mark.asyncio
    async def test_delete_group(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")

        with pytest.raises(PermissionDeniedError):
            await group_service.delete_group(group.id, "member-1")

        await group_service.delete_group(group.id, "owner-1")

        with pytest.raises(GroupNotFoundError):
            await group_service.get_group(group.id, "owner-1")
        assert await group_service.get_user_memberships("member-1") == []


class TestGroupReads:
    """Tests for listing and fetching groups."""

    @pytest.mark.asyncio
    async def test_list_reports_requester_standing(self, make_group, group_service):
        mine = await make_group("owner-1", name="Alpha")
        await make_group("owner-2", name="Beta")
        await group_service.join_group(mine.id, "member-1")

        results = await group_service.list_groups(GroupListFilters(), "owner-1")

        by_name = {g.name: g for g in results}
        assert by_name["Alpha"].is_owner is True
        assert by_name["Alpha"].is_member is True
        assert by_name["Alpha"].member_count == 2
        assert by_name["Beta"].is_member is False
        assert by_name["Beta"].category.name == "Corporations"

    @pytest.mark.asyncio
    async def test_my_groups_filter(self, make_group, group_service):
        await make_group("owner-1", name="Alpha")
        other = await make_group("owner-2", name="Beta")
        await group_service.join_group(other.id, "member-1")

        results = await group_service.list_groups(GroupListFilters(my_groups=True), "member-1")

        assert [g.name for g in results] == ["Beta"]

    @pytest.mark.asyncio
    async def test_hidden_group_invisible_to_outsiders(self, make_group, group_service):
        group = await make_group("owner-1", visibility=Visibility.HIDDEN)

        listed = await group_service.list_groups(GroupListFilters(), "outsider")
        assert listed == []

        with pytest.raises(GroupNotFoundError):
            await group_service.get_group(group.id, "outsider")

        details = await group_service.get_group(group.id, "owner-1")
        assert details.is_owner is True

    @pytest.mark.asyncio
    async def test_get_group_lists_admins(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")
        await group_service.add_admin(group.id, "owner-1", "member-1")

        details = await group_service.get_group(group.id, "member-1")

        assert details.admin_user_ids == ["member-1"]
        assert details.is_admin is True

    @pytest.mark.asyncio
    async def test_members_enriched_with_display_names(self, make_group, group_service, lookup):
        lookup.add("owner-1", "Ada Lovelace")
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")

        members = await group_service.get_group_members(group.id, "owner-1")

        names = {m.user_id: m.display_name for m in members}
        assert names == {"owner-1": "Ada Lovelace", "member-1": None}
        assert len(lookup.bulk_calls) == 1
        assert sorted(lookup.bulk_calls[0]) == ["member-1", "owner-1"]

    @pytest.mark.asyncio
    async def test_outsider_cannot_list_members(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(PermissionDeniedError):
            await group_service.get_group_members(group.id, "outsider")

    @pytest.mark.asyncio
    async def test_system_group_members_hidden_from_plain_members(self, make_group, group_service):
        group = await make_group("owner-1", visibility=Visibility.SYSTEM)
        await group_service.join_group(group.id, "member-1")

        with pytest.raises(PermissionDeniedError):
            await group_service.get_group_members(group.id, "member-1")

    @pytest.mark.asyncio
    async def test_member_ids_cached_until_membership_changes(self, make_group, group_service, cache):
        group = await make_group("owner-1")

        assert await group_service.get_group_member_user_ids(group.id) == ["owner-1"]
        assert await cache.get_member_ids(group.id) == ["owner-1"]

        await group_service.join_group(group.id, "member-1")
        assert await cache.get_member_ids(group.id) is None
        assert sorted(await group_service.get_group_member_user_ids(group.id)) == ["member-1", "owner-1"]

    @pytest.mark.asyncio
    async def test_user_memberships(self, make_group, group_service):
        first = await make_group("owner-1", name="Alpha")
        second = await make_group("owner-2", name="Beta")
        await group_service.join_group(second.id, "owner-1")

        summaries = await group_service.get_user_memberships("owner-1")

        by_id = {s.group_id: s for s in summaries}
        assert by_id[first.id].is_owner is True
        assert by_id[second.id].is_owner is False
        assert by_id[second.id].category_name == "Corporations"


class TestJoinAndLeave:
    """Tests for open joins and leaving."""

    @pytest.mark.asyncio
    async def test_join_open_group(self, make_group, group_service):
        group = await make_group("owner-1")

        member = await group_service.join_group(group.id, "member-1")

        assert member.user_id == "member-1"
        assert member.assignment_type == AssignmentType.MANUAL

    @pytest.mark.asyncio
    async def test_second_join_is_a_conflict(self, make_group, group_service):
        """Joining twice fails and leaves exactly one membership."""
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")

        with pytest.raises(AlreadyMemberError):
            await group_service.join_group(group.id, "member-1")

        user_ids = await group_service.member_repo.get_user_ids(group.id)
        assert sorted(user_ids) == ["member-1", "owner-1"]

    @pytest.mark.asyncio
    async def test_concurrent_insert_reported_as_already_member(self, make_group, group_service, session):
        """The unique constraint backs up the membership pre-check."""
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")

        with pytest.raises(AlreadyMemberError):
            await group_service.memberships.add(group.id, "member-1", AssignmentType.MANUAL)
        await session.rollback()

        assert await group_service.member_repo.is_member(group.id, "member-1")

    @pytest.mark.parametrize("join_mode", [JoinMode.APPROVAL, JoinMode.INVITATION_ONLY])
    @pytest.mark.asyncio
    async def test_closed_groups_cannot_be_joined(self, make_group, group_service, join_mode):
        group = await make_group("owner-1", join_mode=join_mode)

        with pytest.raises(InvalidStateError):
            await group_service.join_group(group.id, "member-1")

    @pytest.mark.asyncio
    async def test_owner_cannot_leave(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(PermissionDeniedError):
            await group_service.leave_group(group.id, "owner-1")

    @pytest.mark.asyncio
    async def test_non_member_cannot_leave(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(PermissionDeniedError):
            await group_service.leave_group(group.id, "stranger")

    @pytest.mark.asyncio
    async def test_leaving_admin_loses_designation(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")
        await group_service.add_admin(group.id, "owner-1", "member-1")

        await group_service.leave_group(group.id, "member-1")

        assert await group_service.is_group_admin(group.id, "member-1") is False
        assert not await group_service.member_repo.is_member(group.id, "member-1")


class TestRemoveMember:
    """Tests for moderator removals."""

    @pytest.mark.asyncio
    async def test_admin_can_remove_member(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "admin-1")
        await group_service.join_group(group.id, "member-1")
        await group_service.add_admin(group.id, "owner-1", "admin-1")

        await group_service.remove_member(group.id, "admin-1", "member-1")

        assert not await group_service.member_repo.is_member(group.id, "member-1")

    @pytest.mark.asyncio
    async def test_plain_member_cannot_remove(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")
        await group_service.join_group(group.id, "member-2")

        with pytest.raises(PermissionDeniedError):
            await group_service.remove_member(group.id, "member-1", "member-2")

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "admin-1")
        await group_service.add_admin(group.id, "owner-1", "admin-1")

        with pytest.raises(PermissionDeniedError):
            await group_service.remove_member(group.id, "admin-1", "owner-1")

    @pytest.mark.asyncio
    async def test_removing_non_member(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(InvalidStateError):
            await group_service.remove_member(group.id, "owner-1", "stranger")


class TestAdmins:
    """Tests for admin designations."""

    @pytest.mark.asyncio
    async def test_add_admin_is_idempotent(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")

        await group_service.add_admin(group.id, "owner-1", "member-1")
        await group_service.add_admin(group.id, "owner-1", "member-1")

        details = await group_service.get_group(group.id, "owner-1")
        assert details.admin_user_ids == ["member-1"]

    @pytest.mark.asyncio
    async def test_owner_cannot_be_admin(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(InvalidStateError):
            await group_service.add_admin(group.id, "owner-1", "owner-1")

    @pytest.mark.asyncio
    async def test_admin_must_be_member(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(InvalidStateError):
            await group_service.add_admin(group.id, "owner-1", "stranger")

    @pytest.mark.asyncio
    async def test_only_owner_manages_admins(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "admin-1")
        await group_service.join_group(group.id, "member-1")
        await group_service.add_admin(group.id, "owner-1", "admin-1")

        with pytest.raises(PermissionDeniedError):
            await group_service.add_admin(group.id, "admin-1", "member-1")

    @pytest.mark.asyncio
    async def test_remove_admin(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")
        await group_service.add_admin(group.id, "owner-1", "member-1")

        await group_service.remove_admin(group.id, "owner-1", "member-1")
        # Removing again is a no-op
        await group_service.remove_admin(group.id, "owner-1", "member-1")

        assert await group_service.is_group_admin(group.id, "member-1") is False
        assert await group_service.member_repo.is_member(group.id, "member-1")


class TestTransferOwnership:
    """Tests for handing a group to another member."""

    @pytest.mark.asyncio
    async def test_admin_promoted_and_old_owner_kept_as_admin(self, make_group, group_service):
        """The new owner drops their admin row and the old owner gains one."""
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")
        await group_service.add_admin(group.id, "owner-1", "member-1")

        updated = await group_service.transfer_ownership(group.id, "owner-1", "member-1")

        assert updated.owner_id == "member-1"
        assert await group_service.is_group_admin(group.id, "member-1") is False
        assert await group_service.is_group_admin(group.id, "owner-1") is True

        # The previous owner no longer controls the group
        with pytest.raises(PermissionDeniedError):
            await group_service.transfer_ownership(group.id, "owner-1", "owner-1")

    @pytest.mark.asyncio
    async def test_new_owner_must_be_member(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(InvalidStateError):
            await group_service.transfer_ownership(group.id, "owner-1", "stranger")

    @pytest.mark.asyncio
    async def test_transfer_to_self_rejected(self, make_group, group_service):
        group = await make_group("owner-1")

        with pytest.raises(ValidationError):
            await group_service.transfer_ownership(group.id, "owner-1", "owner-1")

    @pytest.mark.asyncio
    async def test_system_admin_can_transfer(self, make_group, group_service):
        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")

        updated = await group_service.transfer_ownership(
            group.id, "admin-user", "member-1", is_system_admin=True
        )

        assert updated.owner_id == "member-1"

    @pytest.mark.asyncio
    async def test_transfer_invalidates_both_users(self, make_group, group_service, cache):
        from factories import sample_user_permission

        group = await make_group("owner-1")
        await group_service.join_group(group.id, "member-1")
        for user_id in ("owner-1", "member-1"):
            await cache.set_user_permissions(user_id, [sample_user_permission(group.id)])

        await group_service.transfer_ownership(group.id, "owner-1", "member-1")

        assert await cache.get_user_permissions("owner-1") is None
        assert await cache.get_user_permissions("member-1") is None
