from typing import Annotated, Any

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from content_resolver.api.dependencies import (
    CacheHandlerDep,
    MaintenanceHandlerDep,
    SearchHandlerDep,
    lifespan,
)
from content_resolver.config import settings
from content_resolver.dto import (
    CacheInvalidateRequest,
    CacheInvalidateResponse,
    CacheStatsResponse,
    DuplicateReportResponse,
    EntityItem,
    HealthCheckResponse,
    PopularQueriesResponse,
    ProviderHealthResponse,
    ProvidersResponse,
    RateLimitResponse,
    RebuildRequest,
    RebuildResponse,
    SearchAnalyticsResponse,
    SearchRequest,
    SearchResponse,
    SweepResponse,
)
from content_resolver.entities import EntityType

DESCRIPTION = "Cache-first resolution of hierarchical reference data from rate-limited providers"


def create_app() -> FastAPI:
    """Build the FastAPI application with all routes registered."""
    app = FastAPI(
        title="Content Resolver API",
        description=DESCRIPTION,
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Content Resolver API",
            "version": "0.1.0",
            "description": DESCRIPTION,
            "endpoints": {
                "search": "/search",
                "entities": "/entities/{id}",
                "providers": "/providers",
                "cache": "/cache",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: CacheHandlerDep) -> HealthCheckResponse:
        """Health check endpoint."""
        return await handler.health_check()

    @app.get("/search", response_model=SearchResponse)
    async def search(request: Annotated[SearchRequest, Query()], handler: SearchHandlerDep) -> SearchResponse:
        """
        Search reference data, from cache when possible.

        Args:
            request: Query, entity type, provider, limit and user id.

        Returns:
            Matching entities with cache-hit and latency metadata.
        """
        return await handler.search(request)

    @app.get("/entities/{entity_id}", response_model=EntityItem)
    async def get_entity(entity_id: str, handler: SearchHandlerDep) -> EntityItem:
        """Get one stored entity by id."""
        return await handler.get_entity(entity_id)

    @app.get("/providers", response_model=ProvidersResponse)
    async def list_providers(handler: SearchHandlerDep) -> ProvidersResponse:
        """List registered providers."""
        return await handler.list_providers()

    @app.get("/providers/{name}/health", response_model=ProviderHealthResponse)
    async def provider_health(name: str, handler: SearchHandlerDep) -> ProviderHealthResponse:
        """Check one provider."""
        return await handler.provider_health(name)

    @app.get("/rate-limit", response_model=RateLimitResponse)
    async def rate_limit(handler: SearchHandlerDep) -> RateLimitResponse:
        """Remaining provider budget in the current hour."""
        return await handler.rate_limit()

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: CacheHandlerDep) -> CacheStatsResponse:
        """Get cache statistics."""
        return await handler.get_stats()

    @app.delete("/cache", response_model=CacheInvalidateResponse)
    async def invalidate_cache(
        request: Annotated[CacheInvalidateRequest, Query()], handler: CacheHandlerDep
    ) -> CacheInvalidateResponse:
        """Drop one cached query from both tiers."""
        return await handler.invalidate(request)

    @app.post("/cache/sweep", response_model=SweepResponse)
    async def sweep_cache(handler: CacheHandlerDep) -> SweepResponse:
        """Delete expired persistent cache entries."""
        return await handler.sweep()

    @app.post("/maintenance/rebuild", response_model=RebuildResponse)
    async def rebuild_cache(handler: MaintenanceHandlerDep, request: RebuildRequest | None = None) -> RebuildResponse:
        """Sweep expired entries and pre-warm popular queries."""
        return await handler.rebuild(request or RebuildRequest())

    @app.get("/maintenance/duplicates", response_model=DuplicateReportResponse)
    async def duplicate_report(
        handler: MaintenanceHandlerDep,
        entity_type: EntityType = EntityType.ORGANIZATION,
        threshold: Annotated[float | None, Query(gt=0.0, le=1.0)] = None,
    ) -> DuplicateReportResponse:
        """Near-duplicate canonical entities (nothing is merged)."""
        return await handler.duplicates(entity_type, threshold)

    @app.get("/analytics/searches", response_model=SearchAnalyticsResponse)
    async def search_analytics(
        handler: MaintenanceHandlerDep, days: Annotated[int, Query(ge=1, le=365)] = 30
    ) -> SearchAnalyticsResponse:
        """Search volume, cache hit rate and latency."""
        return await handler.search_analytics(days)

    @app.get("/analytics/popular", response_model=PopularQueriesResponse)
    async def popular_queries(
        handler: MaintenanceHandlerDep,
        entity_type: EntityType | None = None,
        days: Annotated[int, Query(ge=1, le=365)] = 7,
        limit: Annotated[int, Query(ge=1, le=100)] = 20,
    ) -> PopularQueriesResponse:
        """Most frequent recent queries."""
        return await handler.popular_queries(entity_type, days, limit)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "content_resolver.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
