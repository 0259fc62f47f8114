"""HTTP handlers for search and provider operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

from fastapi import HTTPException, status

from content_resolver.dto import (
    EntityItem,
    ProviderHealthResponse,
    ProvidersResponse,
    RateLimitResponse,
    SearchRequest,
    SearchResponse,
)
from content_resolver.services import SearchOrchestrator

from .errors import to_http_exception


class SearchHandler:
    """HTTP handlers for search operations.

    This handler delegates business logic to SearchOrchestrator
    and handles HTTP-specific concerns like:
    - Converting entities to DTOs (dropping lineage fields)
    - Setting appropriate status codes
    - Error handling and responses

    Example:
        ```python
        handler = SearchHandler(orchestrator=orchestrator)

        @app.get("/search", response_model=SearchResponse)
        async def search(request: Annotated[SearchRequest, Query()]):
            return await handler.search(request)
        ```
    """

    def __init__(self, orchestrator: SearchOrchestrator) -> None:
        """Initialize the search handler.

        Args:
            orchestrator: The search pipeline (required).
        """
        self._orchestrator = orchestrator

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Handle GET /search requests.

        Args:
            request: The search request DTO

        Returns:
            SearchResponse with results and cache metadata

        Raises:
            HTTPException: 400 on validation errors, 500 otherwise
        """
        try:
            outcome = await self._orchestrator.search(
                query=request.query,
                entity_type=request.entity_type,
                provider_name=request.provider,
                limit=request.limit,
                user_id=request.user_id,
            )
        except Exception as e:
            raise to_http_exception(e, "search") from e

        return SearchResponse(
            results=[EntityItem.from_entity(entity) for entity in outcome.results],
            cache_hit=outcome.cache_hit,
            provider=outcome.provider,
            latency_ms=outcome.latency_ms,
            total_results=outcome.total_results,
            degraded=outcome.degraded,
        )

    async def get_entity(self, entity_id: str) -> EntityItem:
        """Handle GET /entities/{entity_id} requests.

        Raises:
            HTTPException: 404 if no entity has this id
        """
        try:
            entity = await self._orchestrator.get_entity(entity_id)
        except Exception as e:
            raise to_http_exception(e, "load entity") from e

        if entity is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"kind": "not_found", "message": f"Entity {entity_id} not found"},
            )
        return EntityItem.from_entity(entity)

    async def list_providers(self) -> ProvidersResponse:
        """Handle GET /providers requests."""
        registry = self._orchestrator.registry
        return ProvidersResponse(providers=registry.list_names(), default=registry.default_name)

    async def provider_health(self, name: str) -> ProviderHealthResponse:
        """Handle GET /providers/{name}/health requests."""
        result = await self._orchestrator.check_provider_health(name)
        return ProviderHealthResponse(**result)

    async def rate_limit(self) -> RateLimitResponse:
        """Handle GET /rate-limit requests."""
        snapshot = self._orchestrator.guard.rate_limiter.status()
        return RateLimitResponse(remaining=snapshot.remaining, total=snapshot.total, resets_at=snapshot.resets_at)
