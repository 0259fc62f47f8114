"""SQL repository for the append-only search log (analytics)."""

from datetime import datetime, timedelta

from sqlalchemy import case, func, select

from content_resolver.database import Database
from content_resolver.entities import EntityType, SearchAnalytics, SearchLogEntry
from content_resolver.models import SearchLogRow, new_id
from content_resolver.utils.clock import utcnow


def _to_entity(row: SearchLogRow) -> SearchLogEntry:
    return SearchLogEntry(
        user_id=row.user_id,
        raw_query=row.raw_query,
        normalized_query=row.normalized_query,
        entity_type=row.entity_type,
        cache_hit=row.cache_hit,
        result_count=row.result_count,
        latency_ms=row.latency_ms,
        created_at=row.created_at,
    )


class SearchLogRepository:
    """Write-once search log with a few read-side aggregates."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create(self, entry: SearchLogEntry) -> None:
        """Append one log row."""
        async with self._db.session() as session:
            session.add(
                SearchLogRow(
                    id=new_id(),
                    user_id=entry.user_id,
                    raw_query=entry.raw_query[:500],
                    normalized_query=entry.normalized_query[:500],
                    entity_type=entry.entity_type,
                    cache_hit=entry.cache_hit,
                    result_count=entry.result_count,
                    latency_ms=entry.latency_ms,
                    created_at=entry.created_at or utcnow(),
                )
            )

    async def find_by_user(self, user_id: str, page: int = 1, limit: int = 50) -> dict:
        """Paginated history of one user, newest first.

        Returns:
            Dict with data, total, page, limit and total_pages
        """
        page = max(page, 1)
        async with self._db.session() as session:
            total = (
                await session.execute(select(func.count(SearchLogRow.id)).where(SearchLogRow.user_id == user_id))
            ).scalar_one()
            rows = (
                await session.execute(
                    select(SearchLogRow)
                    .where(SearchLogRow.user_id == user_id)
                    .order_by(SearchLogRow.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
            ).scalars()
            data = [_to_entity(row) for row in rows]

        return {
            "data": data,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit if limit else 0,
        }

    async def popular_queries(
        self, entity_type: EntityType | None = None, days: int = 7, limit: int = 20, now: datetime | None = None
    ) -> list[dict]:
        """Most frequent normalized queries in the last ``days`` days.

        Returns:
            List of {"normalized_query", "entity_type", "count"}, most frequent first
        """
        since = (now or utcnow()) - timedelta(days=days)
        count = func.count(SearchLogRow.id).label("count")
        stmt = (
            select(SearchLogRow.normalized_query, SearchLogRow.entity_type, count)
            .where(SearchLogRow.created_at >= since)
            .group_by(SearchLogRow.normalized_query, SearchLogRow.entity_type)
            .order_by(count.desc(), SearchLogRow.normalized_query)
            .limit(limit)
        )
        if entity_type is not None:
            stmt = stmt.where(SearchLogRow.entity_type == entity_type)

        async with self._db.session() as session:
            rows = (await session.execute(stmt)).all()

        return [
            {"normalized_query": query, "entity_type": kind.value, "count": total} for query, kind, total in rows
        ]

    async def analytics(self, days: int = 30, now: datetime | None = None) -> SearchAnalytics:
        """Totals, hit rate and latency over the last ``days`` days."""
        since = (now or utcnow()) - timedelta(days=days)
        window = SearchLogRow.created_at >= since
        async with self._db.session() as session:
            total, hits, avg_latency = (
                await session.execute(
                    select(
                        func.count(SearchLogRow.id),
                        func.coalesce(func.sum(case((SearchLogRow.cache_hit.is_(True), 1), else_=0)), 0),
                        func.avg(SearchLogRow.latency_ms),
                    ).where(window)
                )
            ).one()
            by_type = (
                await session.execute(
                    select(SearchLogRow.entity_type, func.count(SearchLogRow.id))
                    .where(window)
                    .group_by(SearchLogRow.entity_type)
                    .order_by(SearchLogRow.entity_type)
                )
            ).all()

        return SearchAnalytics(
            total_searches=total,
            cache_hit_rate=hits / total if total else 0.0,
            avg_latency_ms=float(avg_latency or 0.0),
            by_entity_type=[{"entity_type": kind.value, "count": count} for kind, count in by_type],
        )
