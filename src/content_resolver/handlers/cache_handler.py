"""HTTP handlers for cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

from content_resolver.database import Database
from content_resolver.dto import (
    CacheInvalidateRequest,
    CacheInvalidateResponse,
    CacheStatsResponse,
    HealthCheckResponse,
    SweepResponse,
)
from content_resolver.services import CacheHierarchy
from content_resolver.utils.normalization import normalize_for

from .errors import to_http_exception


class CacheHandler:
    """HTTP handlers for cache operations.

    This handler delegates business logic to CacheHierarchy
    and handles HTTP-specific concerns like:
    - Converting service dictionaries to DTOs
    - Setting appropriate status codes
    - Error handling and responses

    Example:
        ```python
        handler = CacheHandler(cache=orchestrator.cache, database=database)

        @app.get("/cache/stats", response_model=CacheStatsResponse)
        async def cache_stats():
            return await handler.get_stats()
        ```
    """

    def __init__(self, cache: CacheHierarchy, database: Database) -> None:
        """Initialize the cache handler.

        Args:
            cache: The cache hierarchy (required).
            database: The persistent store, for health checks (required).
        """
        self._cache = cache
        self._db = database

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/stats requests.

        Returns:
            CacheStatsResponse with tier availability and tier-2 counts

        Raises:
            HTTPException: If an error occurs while fetching stats
        """
        try:
            stats = await self._cache.stats()
        except Exception as e:
            raise to_http_exception(e, "get cache stats") from e
        return CacheStatsResponse.model_validate(stats)

    async def invalidate(self, request: CacheInvalidateRequest) -> CacheInvalidateResponse:
        """Handle DELETE /cache requests.

        The query is normalized the same way searches are, so the raw text a
        user typed drops the right entry.
        """
        normalized = normalize_for(request.entity_type, request.query)
        try:
            removed = await self._cache.invalidate(normalized, request.entity_type)
        except Exception as e:
            raise to_http_exception(e, "invalidate cache") from e
        return CacheInvalidateResponse(removed=removed, normalized_query=normalized, entity_type=request.entity_type)

    async def sweep(self) -> SweepResponse:
        """Handle POST /cache/sweep requests."""
        try:
            removed = await self._cache.sweep_expired()
        except Exception as e:
            raise to_http_exception(e, "sweep expired cache entries") from e
        return SweepResponse(removed=removed)

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests.

        Only the persistent store decides health; the ephemeral tier is
        optional and reported for information.
        """
        database_healthy = await self._db.health_check()
        ephemeral = self._cache.ephemeral
        ephemeral_healthy = await ephemeral.health_check() if ephemeral is not None else None

        return HealthCheckResponse(
            status="healthy" if database_healthy else "unhealthy",
            database_healthy=database_healthy,
            ephemeral_healthy=ephemeral_healthy,
        )
