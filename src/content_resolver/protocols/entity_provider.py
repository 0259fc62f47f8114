"""Entity provider protocol.

Defines the capability every external reference-data provider offers.
Each provider owns its own field mapping and returns records already in
the normalized shape (``RawRecord``).

Implementations can include:
- Hipolabs universities API (default)
- A static dataset (fallback / tests)
- Any other catalogue API
"""

from typing import Protocol, runtime_checkable

from content_resolver.entities import EntityType, RawRecord


@runtime_checkable
class EntityProvider(Protocol):
    """Protocol for reference-data providers.

    Similar to Go's interface pattern - any type that implements these
    methods satisfies the protocol, no explicit inheritance needed.

    Example:
        ```python
        from content_resolver.protocols import EntityProvider

        provider: EntityProvider = HipolabsProvider.create()
        provider: EntityProvider = StaticProvider()
        ```
    """

    @property
    def name(self) -> str:
        """Unique registry key (e.g. "hipolabs")."""
        ...

    @property
    def endpoint(self) -> str | None:
        """Base URL, recorded on the ExternalSource row."""
        ...

    async def fetch(self, query: str, entity_type: EntityType = EntityType.ORGANIZATION) -> list[RawRecord]:
        """Fetch records, raising on transport failure.

        This is the call the orchestrator wraps with the rate limiter and
        retry policy, so failures must surface as exceptions here.

        Args:
            query: Raw user query
            entity_type: Kind of entity wanted

        Returns:
            Normalized records (empty when the provider has nothing)
        """
        ...

    async def search(self, query: str, entity_type: EntityType = EntityType.ORGANIZATION) -> list[RawRecord]:
        """Fetch records without ever raising.

        Args:
            query: Raw user query
            entity_type: Kind of entity wanted

        Returns:
            Normalized records, or an empty list on any failure
        """
        ...

    async def is_available(self) -> bool:
        """Lightweight availability check with a short timeout.

        Returns:
            True if the provider answered, False otherwise (never raises)
        """
        ...
