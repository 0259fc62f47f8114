"""Domain entities for internal representation.

These are pure dataclasses (frozen) used internally by services
and repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.

Entities should have:
- No JSON serialization logic
- No Pydantic validation
- No SQLAlchemy mapping (the ORM rows live in content_resolver.models)
"""

from .cache_entry import CacheEntryEntity, CacheResult
from .entity_type import EntityType
from .normalized_entity import DuplicateCandidate, ExternalSourceEntity, NormalizedEntity, RawRecord
from .search import RateLimitStatus, SearchAnalytics, SearchLogEntry, SearchOutcome

__all__ = [
    "CacheEntryEntity",
    "CacheResult",
    "DuplicateCandidate",
    "EntityType",
    "ExternalSourceEntity",
    "NormalizedEntity",
    "RateLimitStatus",
    "RawRecord",
    "SearchAnalytics",
    "SearchLogEntry",
    "SearchOutcome",
]
