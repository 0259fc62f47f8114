"""Cache entry domain entities."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from .entity_type import EntityType


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for a persistent (tier 2) cache row.

    Attributes:
        normalized_query: The normalized search text (first half of the key)
        entity_type: The entity kind searched (second half of the key)
        result_ids: Ordered ids of NormalizedEntity rows
        result_count: len(result_ids) at write time
        hit_count: Number of tier-2 hits and refreshes
        created_at: When the row was first written
        expires_at: After this instant the row is ignored and swept
    """

    normalized_query: str
    entity_type: EntityType
    result_ids: list[str]
    result_count: int
    hit_count: int
    created_at: datetime
    expires_at: datetime
    id: str | None = None


@dataclass(frozen=True)
class CacheResult:
    """Outcome of a CacheHierarchy lookup that found something.

    Attributes:
        result_ids: Ordered entity ids
        tier: Which tier answered ("ephemeral" or "persistent")
    """

    result_ids: list[str]
    tier: Literal["ephemeral", "persistent"]
