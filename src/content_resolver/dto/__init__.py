"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import CacheInvalidateRequest, RebuildRequest, SearchRequest
from .responses import (
    CacheInvalidateResponse,
    CacheStatsResponse,
    DuplicatePairItem,
    DuplicateReportResponse,
    EntityItem,
    EntityTypeCount,
    HealthCheckResponse,
    PersistentTierStats,
    PopularQueriesResponse,
    PopularQueryItem,
    ProviderHealthResponse,
    ProvidersResponse,
    RateLimitResponse,
    RebuildResponse,
    SearchAnalyticsResponse,
    SearchResponse,
    SweepResponse,
)

__all__ = [
    "SearchRequest",
    "CacheInvalidateRequest",
    "RebuildRequest",
    "EntityItem",
    "SearchResponse",
    "ProvidersResponse",
    "ProviderHealthResponse",
    "RateLimitResponse",
    "EntityTypeCount",
    "PersistentTierStats",
    "CacheStatsResponse",
    "CacheInvalidateResponse",
    "SweepResponse",
    "RebuildResponse",
    "DuplicatePairItem",
    "DuplicateReportResponse",
    "SearchAnalyticsResponse",
    "PopularQueryItem",
    "PopularQueriesResponse",
    "HealthCheckResponse",
]
