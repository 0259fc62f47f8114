"""Ephemeral cache storage protocol.

Defines the interface for the fast, short-TTL cache tier that sits in front
of the persistent store.

Implementations can include:
- Redis (default)
- Memcached
- An in-process dictionary (tests, single-process deployments)
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EphemeralStore(Protocol):
    """Protocol for the ephemeral (tier 1) cache.

    Similar to Go's interface pattern - any type that implements these
    methods satisfies the protocol, no explicit inheritance needed.

    The tier is advisory: implementations must swallow their own transport
    errors and report a miss (``None``) or a no-op instead of raising.

    Example:
        ```python
        from content_resolver.protocols import EphemeralStore

        store: EphemeralStore = RedisEphemeralStore.create()
        ```
    """

    async def get_ids(self, key: str) -> list[str] | None:
        """Read an ordered id list.

        Args:
            key: The cache key

        Returns:
            The stored ids, or None on a miss or backend failure
        """
        ...

    async def set_ids(self, key: str, ids: list[str], ttl: int) -> None:
        """Write an ordered id list.

        Args:
            key: The cache key
            ids: Entity ids to store (order matters)
            ttl: Time-to-live in seconds
        """
        ...

    async def delete(self, key: str) -> bool:
        """Delete a key.

        Args:
            key: The cache key

        Returns:
            True if something was deleted, False otherwise
        """
        ...

    async def health_check(self) -> bool:
        """Check if the backend is reachable.

        Returns:
            True if healthy, False otherwise
        """
        ...
