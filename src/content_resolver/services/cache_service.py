"""Two-tier search cache.

Tier 1 is an optional EphemeralStore (Redis) with a short TTL; tier 2 is
the persistent SqlCacheRepository, which is always authoritative. Both hold
the ordered list of entity ids a normalized query resolved to.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime

from loguru import logger

from content_resolver.config import settings
from content_resolver.entities import CacheResult, EntityType
from content_resolver.errors import PersistenceError
from content_resolver.protocols import EphemeralStore
from content_resolver.repositories.cache_repository import SqlCacheRepository
from content_resolver.utils.clock import utcnow


def cache_key(normalized_query: str, entity_type: EntityType) -> str:
    """Tier-1 key for a normalized query."""
    return f"search:{entity_type.value}:{normalized_query}"


class CacheHierarchy:
    """Read-through cache over an ephemeral and a persistent tier.

    This service depends on the EphemeralStore PROTOCOL for tier 1, so Redis
    can be swapped for anything else (or dropped: pass ``None``). A broken
    tier 1 never fails a call; the persistent tier answers alone.

    Example:
        ```python
        cache = CacheHierarchy(
            persistent=SqlCacheRepository(database),
            ephemeral=RedisEphemeralStore.create(),
        )

        hit = await cache.get("stanford", EntityType.ORGANIZATION)
        if hit is None:
            await cache.set("stanford", EntityType.ORGANIZATION, ids)
        ```
    """

    def __init__(
        self,
        persistent: SqlCacheRepository,
        ephemeral: EphemeralStore | None = None,
        ephemeral_ttl: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the cache hierarchy.

        Args:
            persistent: Tier-2 repository (required).
            ephemeral: Tier-1 store, or None to run on tier 2 only.
            ephemeral_ttl: Tier-1 TTL in seconds. Defaults to settings.
            clock: Returns the current naive-UTC time (injectable for tests).
        """
        self._persistent = persistent
        self._ephemeral = ephemeral
        self._ephemeral_ttl = settings.cache_ephemeral_ttl if ephemeral_ttl is None else ephemeral_ttl
        self._clock = clock
        self._hit_tasks: set[asyncio.Task] = set()

    async def get(self, normalized_query: str, entity_type: EntityType) -> CacheResult | None:
        """Look a query up, tier 1 first.

        Business logic:
        1. Tier-1 hit -> bump hit_count in the background, return it
        2. Tier-2 non-expired hit -> bump hit_count, back-fill tier 1, return it
        3. Otherwise -> None (miss)

        A failing persistent tier is reported as a miss.

        Args:
            normalized_query: Normalized search text
            entity_type: Entity kind

        Returns:
            CacheResult if either tier answered, None otherwise
        """
        key = cache_key(normalized_query, entity_type)

        if self._ephemeral is not None:
            ids = await self._ephemeral.get_ids(key)
            if ids is not None:
                self._count_hit(normalized_query, entity_type)
                return CacheResult(result_ids=ids, tier="ephemeral")

        try:
            entry = await self._persistent.find_active(normalized_query, entity_type, self._clock())
            if entry is None:
                return None
            await self._persistent.increment_hit(entry.id)
        except PersistenceError as e:
            logger.error(f"Persistent cache read failed for {key}: {e}")
            return None

        if self._ephemeral is not None:
            await self._ephemeral.set_ids(key, entry.result_ids, self._ephemeral_ttl)

        return CacheResult(result_ids=entry.result_ids, tier="persistent")

    def _count_hit(self, normalized_query: str, entity_type: EntityType) -> None:
        task = asyncio.create_task(self._increment_hit(normalized_query, entity_type))
        self._hit_tasks.add(task)
        task.add_done_callback(self._hit_tasks.discard)

    async def _increment_hit(self, normalized_query: str, entity_type: EntityType) -> None:
        try:
            await self._persistent.increment_hit_by_key(normalized_query, entity_type)
        except PersistenceError as e:
            logger.warning(f"Hit count update failed for {cache_key(normalized_query, entity_type)}: {e}")

    async def drain(self) -> None:
        """Wait for pending hit-count updates."""
        if self._hit_tasks:
            await asyncio.gather(*self._hit_tasks, return_exceptions=True)

    async def set(self, normalized_query: str, entity_type: EntityType, result_ids: list[str]) -> None:
        """Write an id list to both tiers.

        Tier 2 is written first so a crash in between never leaves tier 1
        ahead of the authoritative copy.

        Raises:
            PersistenceError: If the persistent write fails
        """
        await self._persistent.upsert(normalized_query, entity_type, result_ids, self._clock())
        if self._ephemeral is not None:
            await self._ephemeral.set_ids(cache_key(normalized_query, entity_type), result_ids, self._ephemeral_ttl)

    async def invalidate(self, normalized_query: str, entity_type: EntityType) -> bool:
        """Remove a query from both tiers.

        Returns:
            True if either tier held the key
        """
        removed = await self._persistent.delete(normalized_query, entity_type)
        if self._ephemeral is not None:
            removed = await self._ephemeral.delete(cache_key(normalized_query, entity_type)) or removed
        return removed

    async def invalidate_entity_type(self, entity_type: EntityType) -> int:
        """Remove every cached query of one kind from both tiers.

        Returns:
            Number of persistent entries removed
        """
        if self._ephemeral is not None:
            for normalized_query, kind in await self._persistent.list_keys(entity_type):
                await self._ephemeral.delete(cache_key(normalized_query, kind))
        return await self._persistent.delete_by_entity_type(entity_type)

    async def sweep_expired(self) -> int:
        """Delete persistent entries whose expiry has passed.

        Meant for a periodic job, not the request path. Tier 1 expires on
        its own TTL.

        Returns:
            Number of entries removed
        """
        removed = await self._persistent.delete_expired(self._clock())
        if removed:
            logger.info(f"Swept {removed} expired cache entries")
        return removed

    async def stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with tier1_available and the tier-2 counts
        """
        tier1_available = await self._ephemeral.health_check() if self._ephemeral is not None else False
        return {
            "tier1_available": tier1_available,
            "tier2": await self._persistent.stats(self._clock()),
        }

    @property
    def ephemeral(self) -> EphemeralStore | None:
        """Get the tier-1 store (for testing)."""
        return self._ephemeral

    @property
    def persistent(self) -> SqlCacheRepository:
        """Get the tier-2 repository (for testing)."""
        return self._persistent
