"""Display-name lookup against the core character service."""

import logging
from typing import ClassVar, Protocol

import httpx
from pydantic import BaseModel

from groups_api.config import get_settings
from groups_api.utils.concurrency import gather_bounded
from groups_api.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0


class CharacterMatch(BaseModel):
    """User found by display name."""

    user_id: str
    external_id: str


class CharacterInfo(BaseModel):
    """Display name of a user's main character."""

    name: str
    external_id: str | None = None


class CharacterLookup(Protocol):
    """Resolves display names to users and back."""

    async def find_user_by_display_name(self, name: str) -> CharacterMatch | None:
        ...

    async def bulk_resolve_display_names(self, user_ids: list[str]) -> dict[str, CharacterInfo]:
        ...


class HttpCharacterLookup:
    """Character lookup backed by the core service HTTP API."""

    _http_client: ClassVar[httpx.AsyncClient | None] = None

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        """Initialize lookup client.

        Args:
            base_url: Core service URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.character_service_url).rstrip("/")
        self.timeout = timeout or settings.character_service_timeout

    @classmethod
    def _get_http_client(cls, timeout: float) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if cls._http_client is None or cls._http_client.is_closed:
            cls._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout, connect=CONNECT_TIMEOUT),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            )
        return cls._http_client

    @classmethod
    async def close(cls) -> None:
        """Close the shared HTTP client."""
        if cls._http_client is not None:
            await cls._http_client.aclose()
            cls._http_client = None

    async def find_user_by_display_name(self, name: str) -> CharacterMatch | None:
        """Find the user whose main character has exactly this name.

        Args:
            name: Character display name (case-sensitive)

        Returns:
            CharacterMatch or None if no user has that main character

        Raises:
            httpx.HTTPError: If the core service is unreachable or errors
        """
        client = self._get_http_client(self.timeout)
        response = await client.get(
            f"{self.base_url}/characters/lookup",
            params={"name": name},
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()
        return CharacterMatch(user_id=data["userId"], external_id=str(data["characterId"]))

    async def bulk_resolve_display_names(self, user_ids: list[str]) -> dict[str, CharacterInfo]:
        """Resolve main character names for many users.

        Enrichment is best effort: failures are logged and yield an
        empty mapping.

        Args:
            user_ids: User IDs to resolve

        Returns:
            Dict mapping user ID to CharacterInfo (unknown users omitted)
        """
        if not user_ids:
            return {}

        client = self._get_http_client(self.timeout)
        try:
            response = await client.post(
                f"{self.base_url}/characters/bulk",
                json={"userIds": user_ids},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            log_warning(logger, "Display name resolution failed", e)
            return {}

        names: dict[str, CharacterInfo] = {}
        for user_id, entry in response.json().items():
            character_id = entry.get("characterId")
            names[user_id] = CharacterInfo(
                name=entry["name"],
                external_id=str(character_id) if character_id is not None else None,
            )
        return names


BULK_BATCH_SIZE = 100


async def resolve_display_names(
    lookup: CharacterLookup | None,
    user_ids: list[str],
    concurrency: int = 10,
) -> dict[str, CharacterInfo]:
    """Resolve display names in batches with bounded concurrency.

    Args:
        lookup: Lookup collaborator, or None to skip enrichment
        user_ids: User IDs to resolve (duplicates are ignored)
        concurrency: Maximum number of batches in flight

    Returns:
        Dict mapping user ID to CharacterInfo
    """
    unique_ids = list(dict.fromkeys(user_ids))
    if lookup is None or not unique_ids:
        return {}

    batches = [
        unique_ids[i : i + BULK_BATCH_SIZE] for i in range(0, len(unique_ids), BULK_BATCH_SIZE)
    ]
    results = await gather_bounded(batches, lookup.bulk_resolve_display_names, concurrency)

    names: dict[str, CharacterInfo] = {}
    for batch_result in results:
        names.update(batch_result)
    return names
