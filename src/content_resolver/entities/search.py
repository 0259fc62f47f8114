"""Search pipeline domain entities."""

from dataclasses import dataclass, field
from datetime import datetime

from .entity_type import EntityType
from .normalized_entity import NormalizedEntity


@dataclass(frozen=True)
class SearchOutcome:
    """Result of one SearchOrchestrator.search call.

    Attributes:
        results: Entities to return, already sliced to the caller's limit
        cache_hit: True when either cache tier answered
        provider: Provider consulted on a miss (None on a hit)
        latency_ms: Wall time spent in the pipeline
        total_results: len(results)
        degraded: True when an upstream failure shaped the answer
    """

    results: list[NormalizedEntity]
    cache_hit: bool
    latency_ms: float
    total_results: int
    provider: str | None = None
    degraded: bool = False


@dataclass(frozen=True)
class SearchLogEntry:
    """One analytics row, written once."""

    raw_query: str
    normalized_query: str
    entity_type: EntityType
    cache_hit: bool
    result_count: int
    latency_ms: int
    user_id: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot of the provider budget."""

    remaining: int
    total: int
    resets_at: datetime


@dataclass(frozen=True)
class SearchAnalytics:
    """Aggregates over the search log."""

    total_searches: int
    cache_hit_rate: float
    avg_latency_ms: float
    by_entity_type: list[dict[str, int | str]] = field(default_factory=list)
