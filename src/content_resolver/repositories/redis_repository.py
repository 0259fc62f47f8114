"""Redis implementation of EphemeralStore.

This repository backs the tier-1 cache. It satisfies the EphemeralStore
protocol and never raises: Redis being down is an expected state, the
persistent tier stays authoritative.
"""

import json

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from content_resolver.config import get_redis_client, settings


class RedisEphemeralStore:
    """Redis implementation storing id lists as JSON strings with SETEX.

    This class satisfies the EphemeralStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self, redis_client: redis.Redis, default_ttl: int | None = None) -> None:
        """Initialize the Redis ephemeral store.

        Args:
            redis_client: Async Redis client (decode_responses=True).
            default_ttl: TTL used when callers pass 0. Defaults to settings.
        """
        self._client = redis_client
        self._default_ttl = default_ttl or settings.cache_ephemeral_ttl

    @classmethod
    def create(cls, default_ttl: int | None = None) -> "RedisEphemeralStore | None":
        """Factory method to create RedisEphemeralStore from settings.

        Args:
            default_ttl: Entry TTL in seconds. If None, uses settings.

        Returns:
            Configured RedisEphemeralStore, or None when REDIS_URL is not set
        """
        client = get_redis_client()
        if client is None:
            logger.warning("Redis not configured, using persistent cache tier only")
            return None
        return cls(redis_client=client, default_ttl=default_ttl)

    async def get_ids(self, key: str) -> list[str] | None:
        """Read an ordered id list.

        Args:
            key: The cache key

        Returns:
            The stored ids, or None on a miss or Redis failure
        """
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Ephemeral cache get failed for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding malformed ephemeral entry {key}")
            return None
        return [str(i) for i in ids] if isinstance(ids, list) else None

    async def set_ids(self, key: str, ids: list[str], ttl: int) -> None:
        """Write an ordered id list with a TTL.

        Args:
            key: The cache key
            ids: Entity ids to store
            ttl: Time-to-live in seconds
        """
        try:
            await self._client.setex(key, ttl or self._default_ttl, json.dumps(ids))
        except (RedisError, OSError) as e:
            logger.warning(f"Ephemeral cache set failed for {key}: {e}")

    async def delete(self, key: str) -> bool:
        """Delete a specific key.

        Args:
            key: The cache key

        Returns:
            True if deleted, False otherwise
        """
        try:
            result: int = await self._client.delete(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Ephemeral cache delete failed for {key}: {e}")
            return False
        return result > 0

    async def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            result = await self._client.ping()
            return bool(result)
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self._client.aclose()

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
