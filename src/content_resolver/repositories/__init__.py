"""Repository layer for data access.

This layer abstracts external dependencies (Redis, the SQL store, provider
APIs) behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis -> in-memory, Hipolabs -> static data, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

The providers and the ephemeral store are protocol-based (structural
typing), not inheritance-based. Any class implementing the required methods
will satisfy the protocol.
"""

from content_resolver.protocols import EntityProvider, EphemeralStore

from .cache_repository import SqlCacheRepository
from .entity_repository import EntityRepository
from .hipolabs_provider import HipolabsProvider
from .redis_repository import RedisEphemeralStore
from .search_log_repository import SearchLogRepository
from .source_repository import ExternalSourceRepository
from .static_provider import StaticProvider

__all__ = [
    "EntityProvider",
    "EntityRepository",
    "EphemeralStore",
    "ExternalSourceRepository",
    "HipolabsProvider",
    "RedisEphemeralStore",
    "SearchLogRepository",
    "SqlCacheRepository",
    "StaticProvider",
]
