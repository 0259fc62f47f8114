"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis -> in-memory, Hipolabs -> static data, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from content_resolver.protocols import EntityProvider, EphemeralStore

    # Type hints work with any implementation
    store: EphemeralStore = RedisEphemeralStore.create()
    provider: EntityProvider = StaticProvider()
    ```
"""

from .entity_provider import EntityProvider
from .ephemeral_store import EphemeralStore

__all__ = [
    "EntityProvider",
    "EphemeralStore",
]
