"""Tests for the cache tiers and the GroupCache facade."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from groups_api.models.domain.category import Category
from groups_api.models.domain.permission import PermissionSource, PermissionTarget, UserPermission
from groups_api.services.cache_service import (
    CacheConfig,
    GroupCache,
    MemoryCacheStore,
    RedisCacheStore,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class ExplodingStore:
    """Store whose every operation fails, like an unreachable Redis."""

    async def get(self, key):
        raise ConnectionError("store down")

    async def set(self, key, value, ttl=None):
        raise ConnectionError("store down")

    async def delete(self, *keys):
        raise ConnectionError("store down")


def _category(name: str = "Alliances") -> Category:
    now = datetime.now(timezone.utc)
    return Category(id=uuid4(), name=name, created_at=now, updated_at=now)


def _permission(urn: str = "urn:app:read") -> UserPermission:
    return UserPermission(
        urn=urn,
        name="Read",
        group_id=uuid4(),
        group_name="Group",
        target_type=PermissionTarget.ALL_MEMBERS,
        source=PermissionSource.GLOBAL,
    )


class TestMemoryCacheStore:
    """Tests for the process-local store."""

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self):
        """Entries disappear once their TTL has elapsed."""
        clock = FakeClock()
        store = MemoryCacheStore(clock=clock)
        await store.set("k", "v", ttl=300)

        clock.now += 299
        assert await store.get("k") == "v"

        clock.now += 1
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_entry_without_ttl_never_expires(self):
        clock = FakeClock()
        store = MemoryCacheStore(clock=clock)
        await store.set("k", "v")
        clock.now += 10**9
        assert await store.get("k") == "v"

    @pytest.mark.asyncio
    async def test_delete_counts_removed_keys(self):
        store = MemoryCacheStore()
        await store.set("a", "1")
        await store.set("b", "2")
        assert await store.delete("a", "b", "missing") == 2
        assert await store.get("a") is None


class TestRedisCacheStore:
    """Tests for the Redis store without a server."""

    @pytest.mark.asyncio
    async def test_unconfigured_store_acts_as_miss(self):
        """A store with no URL never connects and reports misses."""
        store = RedisCacheStore(None, name="edge cache")
        await store.connect()

        assert store.is_connected is False
        assert await store.get("anything") is None
        assert await store.set("anything", "v", 10) is False
        assert await store.delete("anything") == 0


class TestGroupCache:
    """Tests for the domain cache facade."""

    @pytest.fixture
    def stores(self):
        return MemoryCacheStore(), MemoryCacheStore(), MemoryCacheStore()

    @pytest.fixture
    def group_cache(self, stores, settings):
        edge, durable, local = stores
        return GroupCache(edge=edge, durable=durable, local=local, settings=settings)

    @pytest.mark.asyncio
    async def test_categories_live_in_edge_tier(self, group_cache, stores):
        """The category list is written to the edge store only."""
        edge, durable, local = stores
        await group_cache.set_categories([_category()])

        assert await edge.get(CacheConfig.KEY_CATEGORIES) is not None
        assert await durable.get(CacheConfig.KEY_CATEGORIES) is None
        assert await local.get(CacheConfig.KEY_CATEGORIES) is None

        cached = await group_cache.get_categories()
        assert [c.name for c in cached] == ["Alliances"]

        await group_cache.invalidate_categories()
        assert await group_cache.get_categories() is None

    @pytest.mark.asyncio
    async def test_member_ids_keyed_per_group(self, group_cache, stores):
        _, _, local = stores
        group_a, group_b = uuid4(), uuid4()
        await group_cache.set_member_ids(group_a, ["u1", "u2"])

        assert await local.get(f"group_members:{group_a}") is not None
        assert await group_cache.get_member_ids(group_a) == ["u1", "u2"]
        assert await group_cache.get_member_ids(group_b) is None

    @pytest.mark.asyncio
    async def test_empty_list_is_a_hit(self, group_cache):
        """An empty cached list is distinguishable from a miss."""
        group_id = uuid4()
        await group_cache.set_member_ids(group_id, [])
        assert await group_cache.get_member_ids(group_id) == []

    @pytest.mark.asyncio
    async def test_invalidate_membership_drops_both_entries(self, group_cache):
        group_id = uuid4()
        await group_cache.set_member_ids(group_id, ["u1"])
        await group_cache.set_user_permissions("u1", [_permission()])

        await group_cache.invalidate_membership(group_id, "u1")

        assert await group_cache.get_member_ids(group_id) is None
        assert await group_cache.get_user_permissions("u1") is None

    @pytest.mark.asyncio
    async def test_invalidate_users_permissions(self, group_cache):
        for user_id in ("u1", "u2", "u3"):
            await group_cache.set_user_permissions(user_id, [_permission()])

        await group_cache.invalidate_users_permissions({"u1", "u2"})

        assert await group_cache.get_user_permissions("u1") is None
        assert await group_cache.get_user_permissions("u2") is None
        assert await group_cache.get_user_permissions("u3") is not None

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_discarded(self, group_cache, stores):
        """Corrupt cache payloads count as misses and are deleted."""
        edge, _, _ = stores
        await edge.set(CacheConfig.KEY_CATEGORIES, "not json")

        assert await group_cache.get_categories() is None
        assert await edge.get(CacheConfig.KEY_CATEGORIES) is None

    @pytest.mark.asyncio
    async def test_failing_store_degrades_to_miss(self, settings):
        """A broken store never raises into the caller."""
        broken = ExplodingStore()
        group_cache = GroupCache(edge=broken, durable=broken, local=broken, settings=settings)

        await group_cache.set_categories([_category()])
        assert await group_cache.get_categories() is None
        await group_cache.invalidate_categories()

        await group_cache.set_auto_invite_groups([])
        assert await group_cache.get_auto_invite_groups() is None
        await group_cache.invalidate_membership(uuid4(), "u1")


class TestCacheFailureInServices:
    """Services keep working when the cache is unavailable."""

    @pytest.mark.asyncio
    async def test_category_listing_survives_broken_cache(self, session, settings):
        from groups_api.models.dto.category import CategoryCreate
        from groups_api.services.category_service import CategoryService

        broken = ExplodingStore()
        service = CategoryService(
            session, GroupCache(edge=broken, durable=broken, local=broken, settings=settings)
        )
        await service.create_category(CategoryCreate(name="Public"), "admin", is_system_admin=True)

        categories = await service.list_categories("someone")
        assert [c.name for c in categories] == ["Public"]
