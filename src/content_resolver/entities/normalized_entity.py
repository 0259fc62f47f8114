"""Reference data domain entities."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .entity_type import EntityType


@dataclass(frozen=True)
class RawRecord:
    """A provider record, already mapped into the normalized shape.

    Providers own their field mapping; the NormalizationEngine only needs
    ``name`` and ``external_id``. Everything else is carried as attributes.

    Attributes:
        external_id: Provider-side identity of the record
        name: Display name
        normalized_name: Provider's own normalization of ``name``
        provider: Name of the provider that produced it
        country: Country, when known
        state: State/province/region, when known
        domain: Primary web domain, when known
        web_page: Primary web page, when known
        alpha_code: ISO alpha-2 country code, when known
        category: Free-form classification (e.g. "State University")
        parent_external_id: External id of the parent record, for hierarchy data
        attributes: Anything else worth keeping
    """

    external_id: str
    name: str
    normalized_name: str
    provider: str
    country: str | None = None
    state: str | None = None
    domain: str | None = None
    web_page: str | None = None
    alpha_code: str | None = None
    category: str | None = None
    parent_external_id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def domain_attributes(self) -> dict[str, Any]:
        """Attributes handed to ``NormalizationEngine.reconcile``."""
        return {
            "country": self.country,
            "state": self.state,
            "domain": self.domain,
            "web_page": self.web_page,
            "alpha_code": self.alpha_code,
            "category": self.category,
            "provider": self.provider,
            "attributes": dict(self.attributes),
        }


@dataclass(frozen=True)
class NormalizedEntity:
    """A reconciled entity as stored in the canonical store.

    ``source_id`` and ``canonical_id`` are lineage fields: they never leave
    the service layer (the DTOs drop them).
    """

    id: str
    entity_type: EntityType
    external_id: str
    source_id: str
    name: str
    normalized_name: str
    is_canonical: bool
    canonical_id: str | None = None
    parent_id: str | None = None
    country: str | None = None
    state: str | None = None
    domain: str | None = None
    web_page: str | None = None
    alpha_code: str | None = None
    category: str | None = None
    provider: str = "unknown"
    attributes: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def canonical_ref(self) -> str:
        """Id of the canonical entity this row stands for."""
        return self.id if self.is_canonical else (self.canonical_id or self.id)

    @classmethod
    def transient(cls, record: RawRecord, entity_type: EntityType) -> "NormalizedEntity":
        """Build an unpersisted entity straight from a provider record.

        Used for fallback data and for fresh results that could not be
        written to the store. The id is the external id namespaced by
        provider, unless the provider already namespaces its ids.
        """
        prefix = f"{record.provider}:"
        entity_id = record.external_id if record.external_id.startswith(prefix) else prefix + record.external_id
        return cls(
            id=entity_id,
            entity_type=entity_type,
            external_id=record.external_id,
            source_id=record.provider,
            name=record.name,
            normalized_name=record.normalized_name,
            is_canonical=True,
            country=record.country,
            state=record.state,
            domain=record.domain,
            web_page=record.web_page,
            alpha_code=record.alpha_code,
            category=record.category,
            provider=record.provider,
            attributes=dict(record.attributes),
        )


@dataclass(frozen=True)
class ExternalSourceEntity:
    """An upstream provider identity."""

    id: str
    name: str
    api_endpoint: str | None
    is_active: bool
    last_sync_at: datetime | None = None
    rate_limit: int = 100


@dataclass(frozen=True)
class DuplicateCandidate:
    """Two canonical entities whose names look like the same thing."""

    first: NormalizedEntity
    second: NormalizedEntity
    similarity: float
