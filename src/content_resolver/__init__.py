"""Content Resolver - cache-first resolution of hierarchical reference data.

This package provides a layered architecture around a slow, rate-limited
reference-data provider (organization -> program -> term -> item):

Layers:
    - protocols: Interface contracts (EphemeralStore, EntityProvider)
    - repositories: Data access implementations (SQL, Redis, provider APIs)
    - services: Business logic (cache hierarchy, normalization, search pipeline)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from content_resolver import Database, ProviderRegistry, SearchOrchestrator, StaticProvider

    database = Database.create()
    await database.create_all()

    registry = ProviderRegistry(default="static")
    registry.register(StaticProvider())

    orchestrator = SearchOrchestrator.create(database, registry)
    outcome = await orchestrator.search("delhi")
    ```

For HTTP API:
    ```python
    from content_resolver.api.app import app
    ```
"""

from content_resolver.config import get_redis_client, settings
from content_resolver.database import Database
from content_resolver.dto import SearchRequest, SearchResponse
from content_resolver.entities import EntityType, NormalizedEntity, RawRecord, SearchOutcome
from content_resolver.errors import ContentResolverError, ValidationError
from content_resolver.protocols import EntityProvider, EphemeralStore
from content_resolver.repositories import HipolabsProvider, RedisEphemeralStore, StaticProvider
from content_resolver.services import (
    CacheHierarchy,
    MaintenanceService,
    NormalizationEngine,
    ProviderRegistry,
    SearchOrchestrator,
)

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    "Database",
    # Protocols (interfaces)
    "EntityProvider",
    "EphemeralStore",
    # Services (business logic)
    "CacheHierarchy",
    "MaintenanceService",
    "NormalizationEngine",
    "ProviderRegistry",
    "SearchOrchestrator",
    # Repositories (data access)
    "HipolabsProvider",
    "RedisEphemeralStore",
    "StaticProvider",
    # Entities (domain models)
    "EntityType",
    "NormalizedEntity",
    "RawRecord",
    "SearchOutcome",
    # Errors
    "ContentResolverError",
    "ValidationError",
    # DTOs (API contracts)
    "SearchRequest",
    "SearchResponse",
]
