"""Response DTOs for API endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from content_resolver.entities import EntityType, NormalizedEntity


class EntityItem(BaseModel):
    """Public view of a NormalizedEntity.

    Lineage fields (source_id, canonical_id) are internal and never exposed.
    """

    id: str = Field(..., description="Entity id (provider-prefixed for unstored fallback data)")
    entity_type: EntityType = Field(..., description="Kind of entity")
    name: str = Field(..., description="Display name")
    normalized_name: str = Field(..., description="Normalized form used for matching")
    parent_id: str | None = Field(None, description="Id of the parent entity in the hierarchy")
    country: str | None = None
    state: str | None = None
    domain: str | None = None
    web_page: str | None = None
    alpha_code: str | None = None
    category: str | None = None
    provider: str = Field(..., description="Provider that delivered the record")
    attributes: dict[str, Any] = Field(default_factory=dict, description="Kind-specific extras")

    @classmethod
    def from_entity(cls, entity: NormalizedEntity) -> "EntityItem":
        return cls(
            id=entity.id,
            entity_type=entity.entity_type,
            name=entity.name,
            normalized_name=entity.normalized_name,
            parent_id=entity.parent_id,
            country=entity.country,
            state=entity.state,
            domain=entity.domain,
            web_page=entity.web_page,
            alpha_code=entity.alpha_code,
            category=entity.category,
            provider=entity.provider,
            attributes=entity.attributes,
        )


class SearchResponse(BaseModel):
    """Response DTO for GET /search."""

    results: list[EntityItem] = Field(default_factory=list, description="Matching entities")
    cache_hit: bool = Field(..., description="Whether a cache tier answered")
    provider: str | None = Field(None, description="Provider consulted on a miss")
    latency_ms: float = Field(..., description="Time spent resolving the query in milliseconds", ge=0.0)
    total_results: int = Field(..., description="Number of results returned", ge=0)
    degraded: bool = Field(False, description="Whether an upstream failure shaped the answer")


class ProvidersResponse(BaseModel):
    """Response DTO for GET /providers."""

    providers: list[str] = Field(..., description="Registered provider names")
    default: str = Field(..., description="Provider used when none is requested")


class ProviderHealthResponse(BaseModel):
    """Response DTO for GET /providers/{name}/health."""

    provider: str
    registered: bool
    available: bool


class RateLimitResponse(BaseModel):
    """Response DTO for GET /rate-limit."""

    remaining: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    resets_at: datetime = Field(..., description="End of the current window (UTC)")


class EntityTypeCount(BaseModel):
    entity_type: str
    count: int = Field(..., ge=0)


class PersistentTierStats(BaseModel):
    """Counts of the persistent (tier 2) cache."""

    total: int = Field(..., ge=0)
    expired: int = Field(..., ge=0)
    by_entity_type: list[EntityTypeCount] = Field(default_factory=list)


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    tier1_available: bool = Field(..., description="Whether the ephemeral tier is reachable")
    tier2: PersistentTierStats


class CacheInvalidateResponse(BaseModel):
    """Response DTO for DELETE /cache."""

    removed: bool = Field(..., description="Whether either tier held the query")
    normalized_query: str
    entity_type: EntityType


class SweepResponse(BaseModel):
    """Response DTO for POST /cache/sweep."""

    removed: int = Field(..., description="Expired entries deleted", ge=0)


class RebuildResponse(BaseModel):
    """Response DTO for POST /maintenance/rebuild."""

    expired_cleaned: int = Field(..., ge=0)
    prewarmed: int = Field(..., ge=0)
    errors: int = Field(..., ge=0)


class DuplicatePairItem(BaseModel):
    first: EntityItem
    second: EntityItem
    similarity: float = Field(..., ge=0.0, le=1.0)


class DuplicateReportResponse(BaseModel):
    """Response DTO for GET /maintenance/duplicates."""

    entity_type: EntityType
    pairs: list[DuplicatePairItem] = Field(default_factory=list)


class SearchAnalyticsResponse(BaseModel):
    """Response DTO for GET /analytics/searches."""

    days: int
    total_searches: int = Field(..., ge=0)
    cache_hit_rate: float = Field(..., ge=0.0, le=1.0)
    avg_latency_ms: float = Field(..., ge=0.0)
    by_entity_type: list[EntityTypeCount] = Field(default_factory=list)


class PopularQueryItem(BaseModel):
    normalized_query: str
    entity_type: str
    count: int = Field(..., ge=1)


class PopularQueriesResponse(BaseModel):
    """Response DTO for GET /analytics/popular."""

    days: int
    queries: list[PopularQueryItem] = Field(default_factory=list)


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    database_healthy: bool = Field(..., description="Whether the persistent store is reachable")
    ephemeral_healthy: bool | None = Field(
        None,
        description="Whether the ephemeral tier is reachable (null when not configured)",
    )
