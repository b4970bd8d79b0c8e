"""Cache tiers for read-heavy group queries.

Three independently configured stores back the GroupCache facade:

- edge: shared Redis, holds the near-static category list
- durable: shared Redis (separate database), holds the auto-invite aggregate
- local: process-local TTL map, holds member ID lists and resolved permissions

Every store failure is logged and treated as a cache miss; the cache is
never allowed to fail the calling operation.
"""

import logging
import time
from collections.abc import Callable
from typing import Any, Protocol, TypeVar
from uuid import UUID

import redis.asyncio as redis
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from groups_api.config import Settings, get_settings
from groups_api.models.domain.category import Category
from groups_api.models.domain.discord import AutoInviteGroup
from groups_api.models.domain.permission import UserPermission
from groups_api.utils.secure_logging import log_warning, mask_id

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheConfig:
    """Cache key formats."""

    KEY_CATEGORIES = "categories:all:v1"
    KEY_AUTO_INVITE_GROUPS = "discord:auto_invite_groups:v1"
    PREFIX_GROUP_MEMBERS = "group_members"
    PREFIX_USER_PERMISSIONS = "user_permissions"


class CacheStore(Protocol):
    """Key-value store with per-key TTL."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        ...

    async def delete(self, *keys: str) -> int:
        ...


class RedisCacheStore:
    """Redis-backed cache store."""

    def __init__(self, url: str | None, name: str = "cache") -> None:
        """Initialize store.

        Args:
            url: Redis URL, or None to disable the store
            name: Label used in log messages
        """
        self._url = url
        self._name = name
        self._client: redis.Redis | None = None
        self._connected = False

    async def connect(self) -> None:
        """Connect to Redis server."""
        if not self._url:
            logger.warning("No Redis URL configured for %s - tier disabled", self._name)
            return

        try:
            self._client = redis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
            )
            await self._client.ping()
            self._connected = True
            logger.info("Redis %s connected successfully", self._name)
        except redis.RedisError as e:
            log_warning(logger, f"Failed to connect to Redis for {self._name}", e)
            self._client = None
            self._connected = False

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client is not None:
            await self._client.aclose()
        self._client = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Check if cache is connected."""
        return self._connected and self._client is not None

    async def get(self, key: str) -> str | None:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        if not self.is_connected:
            return None

        try:
            return await self._client.get(key)
        except redis.RedisError as e:
            logger.error("Cache get error (%s): %s", self._name, e)
            return None

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds

        Returns:
            True if successful
        """
        if not self.is_connected:
            return False

        try:
            if ttl:
                await self._client.setex(key, ttl, value)
            else:
                await self._client.set(key, value)
            return True
        except redis.RedisError as e:
            logger.error("Cache set error (%s): %s", self._name, e)
            return False

    async def delete(self, *keys: str) -> int:
        """Delete keys from cache.

        Args:
            *keys: Keys to delete

        Returns:
            Number of keys deleted
        """
        if not self.is_connected or not keys:
            return 0

        try:
            return await self._client.delete(*keys)
        except redis.RedisError as e:
            logger.error("Cache delete error (%s): %s", self._name, e)
            return 0


class MemoryCacheStore:
    """Process-local cache store with per-key expiry.

    Entries are not shared between processes.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float | None, str]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at is not None and expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        self._entries[key] = (expires_at, value)
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._entries.pop(key, None) is not None)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()


_categories_adapter = TypeAdapter(list[Category])
_auto_invite_adapter = TypeAdapter(list[AutoInviteGroup])
_member_ids_adapter = TypeAdapter(list[str])
_user_permissions_adapter = TypeAdapter(list[UserPermission])


class GroupCache:
    """Domain cache facade over the edge, durable and local tiers."""

    def __init__(
        self,
        edge: CacheStore,
        durable: CacheStore,
        local: CacheStore,
        settings: Settings | None = None,
    ) -> None:
        """Initialize cache facade.

        Args:
            edge: Shared store for the category list
            durable: Shared store for the auto-invite aggregate
            local: Process-local store for member IDs and permissions
            settings: Settings providing TTLs
        """
        self.edge = edge
        self.durable = durable
        self.local = local
        self._settings = settings or get_settings()

    @staticmethod
    def _make_key(prefix: str, *parts: Any) -> str:
        return ":".join([prefix, *(str(p) for p in parts)])

    async def _read(self, store: CacheStore, key: str, adapter: TypeAdapter[T]) -> T | None:
        try:
            raw = await store.get(key)
        except Exception as e:
            log_warning(logger, f"Cache read failed for {key.split(':')[0]}", e)
            return None
        if raw is None:
            return None
        try:
            return adapter.validate_json(raw)
        except PydanticValidationError:
            logger.warning("Discarding unreadable cache entry %s", key.split(":")[0])
            await self._delete(store, key)
            return None

    async def _write(self, store: CacheStore, key: str, adapter: TypeAdapter[T], value: T, ttl: int) -> None:
        try:
            await store.set(key, adapter.dump_json(value).decode(), ttl)
        except Exception as e:
            log_warning(logger, f"Cache write failed for {key.split(':')[0]}", e)

    async def _delete(self, store: CacheStore, *keys: str) -> None:
        if not keys:
            return
        try:
            await store.delete(*keys)
        except Exception as e:
            log_warning(logger, "Cache invalidation failed", e)

    # Categories (edge tier)

    async def get_categories(self) -> list[Category] | None:
        """Get the cached full category list."""
        return await self._read(self.edge, CacheConfig.KEY_CATEGORIES, _categories_adapter)

    async def set_categories(self, categories: list[Category]) -> None:
        """Cache the full category list."""
        await self._write(
            self.edge,
            CacheConfig.KEY_CATEGORIES,
            _categories_adapter,
            categories,
            self._settings.cache_ttl_categories,
        )

    async def invalidate_categories(self) -> None:
        """Drop the cached category list."""
        await self._delete(self.edge, CacheConfig.KEY_CATEGORIES)

    # Auto-invite aggregate (durable tier)

    async def get_auto_invite_groups(self) -> list[AutoInviteGroup] | None:
        """Get the cached list of groups with auto-invite attachments."""
        return await self._read(
            self.durable, CacheConfig.KEY_AUTO_INVITE_GROUPS, _auto_invite_adapter
        )

    async def set_auto_invite_groups(self, groups: list[AutoInviteGroup]) -> None:
        """Cache the list of groups with auto-invite attachments."""
        await self._write(
            self.durable,
            CacheConfig.KEY_AUTO_INVITE_GROUPS,
            _auto_invite_adapter,
            groups,
            self._settings.cache_ttl_auto_invite_groups,
        )

    async def invalidate_auto_invite_groups(self) -> None:
        """Drop the cached auto-invite aggregate."""
        await self._delete(self.durable, CacheConfig.KEY_AUTO_INVITE_GROUPS)

    # Member IDs (local tier)

    async def get_member_ids(self, group_id: UUID) -> list[str] | None:
        """Get the cached member user IDs of a group."""
        key = self._make_key(CacheConfig.PREFIX_GROUP_MEMBERS, group_id)
        return await self._read(self.local, key, _member_ids_adapter)

    async def set_member_ids(self, group_id: UUID, user_ids: list[str]) -> None:
        """Cache the member user IDs of a group."""
        key = self._make_key(CacheConfig.PREFIX_GROUP_MEMBERS, group_id)
        await self._write(
            self.local, key, _member_ids_adapter, user_ids, self._settings.cache_ttl_member_ids
        )

    async def invalidate_member_ids(self, group_id: UUID) -> None:
        """Drop the cached member user IDs of a group."""
        await self._delete(self.local, self._make_key(CacheConfig.PREFIX_GROUP_MEMBERS, group_id))

    # Resolved permissions (local tier)

    async def get_user_permissions(self, user_id: str) -> list[UserPermission] | None:
        """Get a user's cached resolved permissions."""
        key = self._make_key(CacheConfig.PREFIX_USER_PERMISSIONS, user_id)
        return await self._read(self.local, key, _user_permissions_adapter)

    async def set_user_permissions(self, user_id: str, permissions: list[UserPermission]) -> None:
        """Cache a user's resolved permissions."""
        key = self._make_key(CacheConfig.PREFIX_USER_PERMISSIONS, user_id)
        await self._write(
            self.local,
            key,
            _user_permissions_adapter,
            permissions,
            self._settings.cache_ttl_user_permissions,
        )

    async def invalidate_user_permissions(self, user_id: str) -> None:
        """Drop a user's cached resolved permissions."""
        logger.debug("Invalidating permissions for user %s", mask_id(user_id))
        await self._delete(self.local, self._make_key(CacheConfig.PREFIX_USER_PERMISSIONS, user_id))

    async def invalidate_users_permissions(self, user_ids: list[str] | set[str]) -> None:
        """Drop the cached resolved permissions of several users."""
        keys = [
            self._make_key(CacheConfig.PREFIX_USER_PERMISSIONS, user_id)
            for user_id in sorted(set(user_ids))
        ]
        await self._delete(self.local, *keys)

    async def invalidate_membership(self, group_id: UUID, user_id: str) -> None:
        """Drop everything a membership change in one group can stale."""
        await self.invalidate_member_ids(group_id)
        await self.invalidate_user_permissions(user_id)


_group_cache: GroupCache | None = None


async def get_group_cache() -> GroupCache:
    """Get or create the process-wide cache facade.

    Returns:
        GroupCache singleton instance
    """
    global _group_cache
    if _group_cache is None:
        settings = get_settings()
        edge = RedisCacheStore(
            str(settings.redis_url) if settings.redis_url else None, name="edge cache"
        )
        durable = RedisCacheStore(settings.durable_cache_url_resolved, name="durable cache")
        await edge.connect()
        await durable.connect()
        _group_cache = GroupCache(edge=edge, durable=durable, local=MemoryCacheStore(), settings=settings)
    return _group_cache
