"""Normalization and deduplication of provider records.

Records for the same real-world thing arrive from several sources. Each
source keeps its own provenance row; the first row stored under a
normalized name becomes canonical and later ones point at it.
"""

from collections.abc import Mapping
from itertools import combinations
from typing import Any

from loguru import logger

from content_resolver.config import settings
from content_resolver.entities import DuplicateCandidate, EntityType, NormalizedEntity, RawRecord
from content_resolver.errors import PersistenceError, ValidationError
from content_resolver.repositories.entity_repository import EntityRepository
from content_resolver.repositories.source_repository import ExternalSourceRepository
from content_resolver.utils.normalization import are_similar, normalize_for, similarity

# One retry covers losing both the canonical slot and then the external key.
_MAX_ATTEMPTS = 3

# Keys of a hierarchy node that are structure, not attributes
_STRUCTURAL_KEYS = frozenset({"external_id", "name", "terms", "items"})


class NormalizationEngine:
    """Reconciles raw records into canonical entities.

    Exact normalized-name equality (per entity type and parent scope) is the
    only canonicalization rule. Fuzzy similarity is a separate, read-only
    maintenance pass (``find_near_duplicates``) so distinct entities are
    never merged silently.

    Example:
        ```python
        engine = NormalizationEngine(entities=EntityRepository(db), sources=ExternalSourceRepository(db))

        first = await engine.reconcile("ext-1", "srcA", "Example University")
        second = await engine.reconcile("ext-2", "srcB", "Example University")
        assert second.canonical_id == first.id
        ```
    """

    def __init__(
        self,
        entities: EntityRepository,
        sources: ExternalSourceRepository,
        similarity_threshold: float | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            entities: Canonical store access.
            sources: External source access.
            similarity_threshold: Fuzzy threshold for near-duplicate reports. Defaults to settings.
        """
        self._entities = entities
        self._sources = sources
        self._threshold = settings.similarity_threshold if similarity_threshold is None else similarity_threshold

    @property
    def similarity_threshold(self) -> float:
        """Get the fuzzy-match threshold."""
        return self._threshold

    async def reconcile(
        self,
        external_id: str,
        source_name: str,
        raw_name: str,
        attrs: Mapping[str, Any] | None = None,
        entity_type: EntityType = EntityType.ORGANIZATION,
        parent_id: str | None = None,
        api_endpoint: str | None = None,
    ) -> NormalizedEntity:
        """Store one record, deduplicating against canonical entities.

        Business logic:
        1. Normalize the name
        2. Find or create the ExternalSource for ``source_name``
        3. Already stored for (source, external_id) -> return it unchanged
        4. Canonical entity with the same normalized name in scope -> store a duplicate pointing at it
        5. Otherwise store a new canonical entity

        Inserts skip duplicates. Losing a race on the external key returns the
        winner's row; losing it on the canonical slot repeats step 4.

        Args:
            external_id: Provider-side identity
            source_name: Provider name
            raw_name: Display name as delivered
            attrs: Domain attributes (country, domain, provider, attributes, ...)
            entity_type: Kind of entity
            parent_id: Stored id of the parent entity, for hierarchy data
            api_endpoint: Recorded on the source when it is first created

        Returns:
            The stored entity for (source, external_id)

        Raises:
            ValidationError: If the name normalizes to nothing
            PersistenceError: If the store fails or keeps losing races
        """
        normalized = normalize_for(entity_type, raw_name)
        if not normalized:
            raise ValidationError(f"Cannot reconcile {external_id!r}: name {raw_name!r} normalizes to nothing")

        source = await self._sources.find_or_create(source_name, api_endpoint)

        existing = await self._entities.find_by_external_id(entity_type, source.id, external_id)
        if existing is not None:
            return existing

        row: dict[str, Any] = {
            "provider": source_name,
            **(attrs or {}),
            "entity_type": entity_type,
            "external_id": external_id,
            "source_id": source.id,
            "parent_id": parent_id,
            "name": raw_name.strip(),
            "normalized_name": normalized,
        }

        for _ in range(_MAX_ATTEMPTS):
            canonical = await self._entities.find_canonical(entity_type, normalized, parent_id)
            if canonical is None:
                row.update(is_canonical=True, canonical_id=None)
            else:
                row.update(is_canonical=False, canonical_id=canonical.id)

            await self._entities.insert_one(row)

            stored = await self._entities.find_by_external_id(entity_type, source.id, external_id)
            if stored is not None:
                return stored

            logger.debug(f"Lost canonical slot for {entity_type.value} {normalized!r}, retrying")

        raise PersistenceError(f"Could not reconcile {entity_type.value} {external_id!r} from {source_name!r}")

    async def reconcile_record(
        self,
        record: RawRecord,
        entity_type: EntityType = EntityType.ORGANIZATION,
        parent_id: str | None = None,
        api_endpoint: str | None = None,
    ) -> NormalizedEntity:
        """Reconcile a provider record (convenience over ``reconcile``)."""
        return await self.reconcile(
            external_id=record.external_id,
            source_name=record.provider,
            raw_name=record.name,
            attrs=record.domain_attributes(),
            entity_type=entity_type,
            parent_id=parent_id,
            api_endpoint=api_endpoint,
        )

    async def reconcile_hierarchy(
        self,
        source_name: str,
        organization: RawRecord,
        programs: list[Mapping[str, Any]],
    ) -> dict[str, Any]:
        """Reconcile an organization with its programs, terms and items.

        Each program is a mapping with ``external_id``, ``name`` and optional
        ``terms``; each term likewise has optional ``items``. Any other keys
        are kept as attributes.

        Example:
            ```python
            await engine.reconcile_hierarchy(
                "static",
                organization,
                [{"external_id": "p1", "name": "B.Tech CS", "terms": [
                    {"external_id": "t1", "name": "Semester 1", "number": 1, "items": [
                        {"external_id": "i1", "name": "Data Structures", "credits": 4},
                    ]},
                ]}],
            )
            ```

        Returns:
            Dict with organization_id, programs_created, terms_created and items_created
        """
        org = await self.reconcile(
            organization.external_id,
            source_name,
            organization.name,
            organization.domain_attributes(),
            EntityType.ORGANIZATION,
        )

        counts = {"programs_created": 0, "terms_created": 0, "items_created": 0}
        for program in programs:
            stored_program = await self._reconcile_node(source_name, program, EntityType.PROGRAM, org.id)
            counts["programs_created"] += 1

            for term in program.get("terms", []):
                stored_term = await self._reconcile_node(source_name, term, EntityType.TERM, stored_program.id)
                counts["terms_created"] += 1

                for item in term.get("items", []):
                    await self._reconcile_node(source_name, item, EntityType.ITEM, stored_term.id)
                    counts["items_created"] += 1

        logger.info(
            f"Reconciled hierarchy for {org.name!r} from {source_name}: "
            f"{counts['programs_created']} programs, {counts['terms_created']} terms, {counts['items_created']} items"
        )
        return {"organization_id": org.id, **counts}

    async def _reconcile_node(
        self, source_name: str, node: Mapping[str, Any], entity_type: EntityType, parent_id: str
    ) -> NormalizedEntity:
        extra = {key: value for key, value in node.items() if key not in _STRUCTURAL_KEYS}
        return await self.reconcile(
            external_id=str(node["external_id"]),
            source_name=source_name,
            raw_name=str(node["name"]),
            attrs={"attributes": extra},
            entity_type=entity_type,
            parent_id=parent_id,
        )

    async def find_near_duplicates(
        self, entity_type: EntityType, threshold: float | None = None, limit: int = 5000
    ) -> list[DuplicateCandidate]:
        """Report pairs of canonical entities whose names look alike.

        Read-only: nothing is merged. Only entities in the same parent scope
        are compared, and identical names cannot occur among canonicals.

        Args:
            entity_type: Kind of entity to scan
            threshold: Override the configured similarity threshold
            limit: Maximum number of canonical entities scanned

        Returns:
            Candidate pairs, most similar first
        """
        threshold = self._threshold if threshold is None else threshold
        canonicals = await self._entities.list_canonical(entity_type, limit=limit)

        by_scope: dict[str, list[NormalizedEntity]] = {}
        for entity in canonicals:
            by_scope.setdefault(entity.parent_id or "", []).append(entity)

        candidates = []
        for group in by_scope.values():
            for first, second in combinations(group, 2):
                if are_similar(first.normalized_name, second.normalized_name, threshold):
                    candidates.append(
                        DuplicateCandidate(
                            first=first,
                            second=second,
                            similarity=similarity(first.normalized_name, second.normalized_name),
                        )
                    )

        candidates.sort(key=lambda c: (-c.similarity, c.first.normalized_name, c.second.normalized_name))
        return candidates
