"""SQL implementation of the persistent (tier 2) search cache."""

from datetime import datetime, timedelta

from sqlalchemy import delete, func, select, update

from content_resolver.config import settings
from content_resolver.database import Database
from content_resolver.entities import CacheEntryEntity, EntityType
from content_resolver.models import SearchCacheRow, new_id


def _to_entity(row: SearchCacheRow) -> CacheEntryEntity:
    return CacheEntryEntity(
        id=row.id,
        normalized_query=row.normalized_query,
        entity_type=row.entity_type,
        result_ids=list(row.result_ids or []),
        result_count=row.result_count,
        hit_count=row.hit_count,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )


class SqlCacheRepository:
    """Tier-2 cache rows keyed by (normalized_query, entity_type).

    Every method takes ``now`` explicitly so the caller's clock decides
    what "expired" means.
    """

    def __init__(self, database: Database, ttl_hours: int | None = None) -> None:
        """Initialize the repository.

        Args:
            database: Session provider for the persistent store.
            ttl_hours: Lifetime of a written entry. Defaults to settings.
        """
        self._db = database
        self._ttl_hours = settings.cache_persistent_ttl_hours if ttl_hours is None else ttl_hours

    @property
    def ttl_hours(self) -> int:
        """Lifetime of a written entry in hours."""
        return self._ttl_hours

    async def find_active(self, normalized_query: str, entity_type: EntityType, now: datetime) -> CacheEntryEntity | None:
        """Find a non-expired entry.

        Args:
            normalized_query: Normalized search text
            entity_type: Entity kind
            now: Reference instant for expiry

        Returns:
            The entry, or None if missing or expired
        """
        stmt = select(SearchCacheRow).where(
            SearchCacheRow.normalized_query == normalized_query,
            SearchCacheRow.entity_type == entity_type,
            SearchCacheRow.expires_at > now,
        )
        async with self._db.session() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _to_entity(row) if row else None

    async def increment_hit(self, entry_id: str) -> None:
        """Bump the hit counter of an entry (analytics)."""
        stmt = (
            update(SearchCacheRow)
            .where(SearchCacheRow.id == entry_id)
            .values(hit_count=SearchCacheRow.hit_count + 1)
        )
        async with self._db.session() as session:
            await session.execute(stmt)

    async def increment_hit_by_key(self, normalized_query: str, entity_type: EntityType) -> None:
        """Bump the hit counter of the entry for a query, if there is one."""
        stmt = (
            update(SearchCacheRow)
            .where(SearchCacheRow.normalized_query == normalized_query, SearchCacheRow.entity_type == entity_type)
            .values(hit_count=SearchCacheRow.hit_count + 1)
        )
        async with self._db.session() as session:
            await session.execute(stmt)

    async def upsert(
        self,
        normalized_query: str,
        entity_type: EntityType,
        result_ids: list[str],
        now: datetime,
        ttl_hours: int | None = None,
    ) -> None:
        """Create an entry or replace its ids and extend its expiry.

        A replaced entry also counts as a hit, like a refresh.

        Args:
            normalized_query: Normalized search text
            entity_type: Entity kind
            result_ids: Ordered entity ids
            now: Write instant
            ttl_hours: Override the repository TTL
        """
        expires_at = now + timedelta(hours=self._ttl_hours if ttl_hours is None else ttl_hours)
        stmt = self._db.insert(SearchCacheRow).values(
            id=new_id(),
            normalized_query=normalized_query,
            entity_type=entity_type,
            result_ids=list(result_ids),
            result_count=len(result_ids),
            hit_count=0,
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["normalized_query", "entity_type"],
            set_={
                "result_ids": stmt.excluded.result_ids,
                "result_count": stmt.excluded.result_count,
                "updated_at": stmt.excluded.updated_at,
                "expires_at": stmt.excluded.expires_at,
                "hit_count": SearchCacheRow.hit_count + 1,
            },
        )
        async with self._db.session() as session:
            await session.execute(stmt)

    async def delete(self, normalized_query: str, entity_type: EntityType) -> bool:
        """Delete one entry.

        Returns:
            True if a row was removed
        """
        stmt = delete(SearchCacheRow).where(
            SearchCacheRow.normalized_query == normalized_query,
            SearchCacheRow.entity_type == entity_type,
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def delete_expired(self, now: datetime) -> int:
        """Delete every entry with expires_at < now.

        Returns:
            Number of rows removed
        """
        stmt = delete(SearchCacheRow).where(SearchCacheRow.expires_at < now)
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def delete_by_entity_type(self, entity_type: EntityType) -> int:
        """Delete every entry of one entity kind.

        Returns:
            Number of rows removed
        """
        stmt = delete(SearchCacheRow).where(SearchCacheRow.entity_type == entity_type)
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def list_keys(self, entity_type: EntityType | None = None) -> list[tuple[str, EntityType]]:
        """List (normalized_query, entity_type) keys, optionally for one kind."""
        stmt = select(SearchCacheRow.normalized_query, SearchCacheRow.entity_type)
        if entity_type is not None:
            stmt = stmt.where(SearchCacheRow.entity_type == entity_type)
        async with self._db.session() as session:
            return [(query, kind) for query, kind in (await session.execute(stmt)).all()]

    async def stats(self, now: datetime) -> dict:
        """Get repository statistics.

        Returns:
            Dictionary with total, expired and per-entity-type counts
        """
        async with self._db.session() as session:
            total = (await session.execute(select(func.count(SearchCacheRow.id)))).scalar_one()
            expired = (
                await session.execute(select(func.count(SearchCacheRow.id)).where(SearchCacheRow.expires_at < now))
            ).scalar_one()
            by_type = (
                await session.execute(
                    select(SearchCacheRow.entity_type, func.count(SearchCacheRow.id))
                    .group_by(SearchCacheRow.entity_type)
                    .order_by(SearchCacheRow.entity_type)
                )
            ).all()

        return {
            "total": total,
            "expired": expired,
            "by_entity_type": [{"entity_type": kind.value, "count": count} for kind, count in by_type],
        }
