"""SQL repository for NormalizedEntity rows.

Uniqueness lives in the schema (see content_resolver.models):
(entity_type, source_id, external_id) and one canonical row per
(entity_type, scope, normalized_name). Inserts skip duplicates, so
concurrent writers never see an IntegrityError; they read back the winner.
"""

from typing import Any

from sqlalchemy import select

from content_resolver.database import Database
from content_resolver.entities import EntityType, NormalizedEntity
from content_resolver.models import NormalizedEntityRow, new_id
from content_resolver.utils.clock import utcnow


def _to_entity(row: NormalizedEntityRow) -> NormalizedEntity:
    return NormalizedEntity(
        id=row.id,
        entity_type=row.entity_type,
        external_id=row.external_id,
        source_id=row.source_id,
        name=row.name,
        normalized_name=row.normalized_name,
        is_canonical=row.is_canonical,
        canonical_id=row.canonical_id,
        parent_id=row.parent_id,
        country=row.country,
        state=row.state,
        domain=row.domain,
        web_page=row.web_page,
        alpha_code=row.alpha_code,
        category=row.category,
        provider=row.provider,
        attributes=dict(row.attributes or {}),
        created_at=row.created_at,
    )


class EntityRepository:
    """Reads and skip-duplicate writes of reconciled entities."""

    # Columns callers may set through insert_many
    WRITABLE = frozenset(
        {
            "entity_type",
            "external_id",
            "source_id",
            "parent_id",
            "name",
            "normalized_name",
            "is_canonical",
            "canonical_id",
            "country",
            "state",
            "domain",
            "web_page",
            "alpha_code",
            "category",
            "provider",
            "attributes",
        }
    )

    def __init__(self, database: Database) -> None:
        self._db = database

    async def find_by_id(self, entity_id: str) -> NormalizedEntity | None:
        """Find one entity by primary key."""
        async with self._db.session() as session:
            row = await session.get(NormalizedEntityRow, entity_id)
            return _to_entity(row) if row else None

    async def find_by_external_id(
        self, entity_type: EntityType, source_id: str, external_id: str
    ) -> NormalizedEntity | None:
        """Find the entity a source already delivered under ``external_id``."""
        stmt = select(NormalizedEntityRow).where(
            NormalizedEntityRow.entity_type == entity_type,
            NormalizedEntityRow.source_id == source_id,
            NormalizedEntityRow.external_id == external_id,
        )
        async with self._db.session() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _to_entity(row) if row else None

    async def find_canonical(
        self, entity_type: EntityType, normalized_name: str, parent_id: str | None = None
    ) -> NormalizedEntity | None:
        """Find the canonical entity for an exact normalized name in a scope."""
        stmt = select(NormalizedEntityRow).where(
            NormalizedEntityRow.entity_type == entity_type,
            NormalizedEntityRow.scope == (parent_id or ""),
            NormalizedEntityRow.normalized_name == normalized_name,
            NormalizedEntityRow.is_canonical.is_(True),
        )
        async with self._db.session() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _to_entity(row) if row else None

    async def insert_many(self, rows: list[dict[str, Any]]) -> list[str]:
        """Bulk insert, silently skipping rows that violate a unique key.

        Args:
            rows: Column values; only WRITABLE keys are used

        Returns:
            Ids of the rows actually inserted
        """
        if not rows:
            return []

        now = utcnow()
        values = []
        for row in rows:
            clean = {key: value for key, value in row.items() if key in self.WRITABLE}
            clean.setdefault("attributes", {})
            clean.setdefault("provider", "unknown")
            clean.setdefault("parent_id", None)
            clean.setdefault("canonical_id", None)
            for column in ("country", "state", "domain", "web_page", "alpha_code", "category"):
                clean.setdefault(column, None)
            clean["id"] = new_id()
            clean["scope"] = clean["parent_id"] or ""
            clean["created_at"] = now
            values.append(clean)

        stmt = (
            self._db.insert(NormalizedEntityRow)
            .values(values)
            .on_conflict_do_nothing()
            .returning(NormalizedEntityRow.id)
        )
        async with self._db.session() as session:
            return list((await session.execute(stmt)).scalars())

    async def insert_one(self, row: dict[str, Any]) -> str | None:
        """Insert one row with skip-duplicate semantics.

        Returns:
            The new id, or None if a unique key already existed
        """
        inserted = await self.insert_many([row])
        return inserted[0] if inserted else None

    async def get_many(self, ids: list[str]) -> list[NormalizedEntity]:
        """Load entities by id, keeping the order of ``ids``.

        Ids with no row are skipped.
        """
        if not ids:
            return []
        stmt = select(NormalizedEntityRow).where(NormalizedEntityRow.id.in_(ids))
        async with self._db.session() as session:
            by_id = {row.id: _to_entity(row) for row in (await session.execute(stmt)).scalars()}
        return [by_id[entity_id] for entity_id in dict.fromkeys(ids) if entity_id in by_id]

    async def search_canonical(
        self, entity_type: EntityType, normalized_query: str, limit: int = 100
    ) -> list[NormalizedEntity]:
        """Canonical entities whose normalized name contains the query."""
        stmt = (
            select(NormalizedEntityRow)
            .where(
                NormalizedEntityRow.entity_type == entity_type,
                NormalizedEntityRow.is_canonical.is_(True),
                NormalizedEntityRow.normalized_name.contains(normalized_query, autoescape=True),
            )
            .order_by(NormalizedEntityRow.normalized_name, NormalizedEntityRow.id)
            .limit(limit)
        )
        async with self._db.session() as session:
            return [_to_entity(row) for row in (await session.execute(stmt)).scalars()]

    async def list_canonical(self, entity_type: EntityType, limit: int = 5000) -> list[NormalizedEntity]:
        """All canonical entities of a kind, by normalized name."""
        stmt = (
            select(NormalizedEntityRow)
            .where(NormalizedEntityRow.entity_type == entity_type, NormalizedEntityRow.is_canonical.is_(True))
            .order_by(NormalizedEntityRow.normalized_name)
            .limit(limit)
        )
        async with self._db.session() as session:
            return [_to_entity(row) for row in (await session.execute(stmt)).scalars()]

    async def find_duplicates_of(self, canonical_id: str) -> list[NormalizedEntity]:
        """Non-canonical rows pointing at ``canonical_id`` (provenance)."""
        stmt = (
            select(NormalizedEntityRow)
            .where(NormalizedEntityRow.canonical_id == canonical_id)
            .order_by(NormalizedEntityRow.created_at)
        )
        async with self._db.session() as session:
            return [_to_entity(row) for row in (await session.execute(stmt)).scalars()]

    async def find_children(self, parent_id: str) -> list[NormalizedEntity]:
        """Entities one level below ``parent_id`` in the hierarchy."""
        stmt = (
            select(NormalizedEntityRow)
            .where(NormalizedEntityRow.parent_id == parent_id)
            .order_by(NormalizedEntityRow.normalized_name)
        )
        async with self._db.session() as session:
            return [_to_entity(row) for row in (await session.execute(stmt)).scalars()]
