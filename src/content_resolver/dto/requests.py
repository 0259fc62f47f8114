"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field

from content_resolver.entities import EntityType


class SearchRequest(BaseModel):
    """Query parameters of GET /search.

    The handler will convert this to a SearchOrchestrator.search call.
    """

    query: str = Field(..., description="Free-text search query", min_length=1, max_length=500)
    entity_type: EntityType = Field(EntityType.ORGANIZATION, description="Kind of entity to search")
    provider: str | None = Field(None, description="Registered provider name (default from settings)")
    limit: int = Field(20, description="Maximum results returned", ge=1, le=100)
    user_id: str | None = Field(None, description="Optional analytics attribution")


class CacheInvalidateRequest(BaseModel):
    """Query parameters of DELETE /cache."""

    query: str = Field(..., description="Query whose cached results are dropped", min_length=1)
    entity_type: EntityType = Field(EntityType.ORGANIZATION, description="Entity kind of the cached query")


class RebuildRequest(BaseModel):
    """Request DTO for the cache rebuild job."""

    prewarm_limit: int = Field(100, description="Popular queries to pre-warm", ge=0, le=1000)
