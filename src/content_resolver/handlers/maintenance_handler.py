"""HTTP handlers for maintenance jobs and search analytics."""

from content_resolver.dto import (
    DuplicatePairItem,
    DuplicateReportResponse,
    EntityItem,
    PopularQueriesResponse,
    RebuildRequest,
    RebuildResponse,
    SearchAnalyticsResponse,
)
from content_resolver.entities import EntityType
from content_resolver.repositories import SearchLogRepository
from content_resolver.services import MaintenanceService

from .errors import to_http_exception


class MaintenanceHandler:
    """HTTP handlers for admin operations.

    Delegates to MaintenanceService for jobs and to SearchLogRepository
    for read-only analytics.
    """

    def __init__(self, maintenance: MaintenanceService, search_logs: SearchLogRepository) -> None:
        self._maintenance = maintenance
        self._search_logs = search_logs

    async def rebuild(self, request: RebuildRequest) -> RebuildResponse:
        """Handle POST /maintenance/rebuild requests."""
        stats = await self._maintenance.run_cache_rebuild(prewarm_limit=request.prewarm_limit)
        return RebuildResponse(**stats)

    async def duplicates(self, entity_type: EntityType, threshold: float | None = None) -> DuplicateReportResponse:
        """Handle GET /maintenance/duplicates requests."""
        try:
            pairs = await self._maintenance.duplicate_report(entity_type, threshold=threshold)
        except Exception as e:
            raise to_http_exception(e, "build duplicate report") from e

        return DuplicateReportResponse(
            entity_type=entity_type,
            pairs=[
                DuplicatePairItem(
                    first=EntityItem.from_entity(pair.first),
                    second=EntityItem.from_entity(pair.second),
                    similarity=round(pair.similarity, 4),
                )
                for pair in pairs
            ],
        )

    async def search_analytics(self, days: int = 30) -> SearchAnalyticsResponse:
        """Handle GET /analytics/searches requests."""
        try:
            analytics = await self._search_logs.analytics(days=days)
        except Exception as e:
            raise to_http_exception(e, "compute search analytics") from e

        return SearchAnalyticsResponse(
            days=days,
            total_searches=analytics.total_searches,
            cache_hit_rate=analytics.cache_hit_rate,
            avg_latency_ms=analytics.avg_latency_ms,
            by_entity_type=analytics.by_entity_type,
        )

    async def popular_queries(
        self, entity_type: EntityType | None = None, days: int = 7, limit: int = 20
    ) -> PopularQueriesResponse:
        """Handle GET /analytics/popular requests."""
        try:
            rows = await self._search_logs.popular_queries(entity_type=entity_type, days=days, limit=limit)
        except Exception as e:
            raise to_http_exception(e, "load popular queries") from e
        return PopularQueriesResponse(days=days, queries=rows)
