"""Service layer for business logic.

This layer contains the resolution pipeline. Services depend on protocols
(EphemeralStore, EntityProvider) and repositories, never on HTTP.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from content_resolver.services import ProviderRegistry, SearchOrchestrator

    registry = ProviderRegistry()
    registry.register(StaticProvider())

    orchestrator = SearchOrchestrator.create(database, registry)
    outcome = await orchestrator.search("delhi")
    ```
"""

from .cache_service import CacheHierarchy, cache_key
from .maintenance_service import MaintenanceService
from .normalization_service import NormalizationEngine
from .provider_registry import ProviderRegistry
from .rate_limiter import RateLimiter
from .resilience import ProviderGuard, ResilientFetcher
from .search_service import SearchOrchestrator
from .single_flight import SingleFlight

__all__ = [
    "CacheHierarchy",
    "MaintenanceService",
    "NormalizationEngine",
    "ProviderGuard",
    "ProviderRegistry",
    "RateLimiter",
    "ResilientFetcher",
    "SearchOrchestrator",
    "SingleFlight",
    "cache_key",
]
