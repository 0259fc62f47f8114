"""Off-request-path cache and data maintenance."""

from loguru import logger

from content_resolver.entities import DuplicateCandidate, EntityType
from content_resolver.errors import ContentResolverError
from content_resolver.services.search_service import SearchOrchestrator

TOP_QUERIES_TO_PREWARM = 100
PREWARM_WINDOW_DAYS = 30


class MaintenanceService:
    """Periodic jobs: cache rebuild, bulk invalidation, duplicate reports.

    Runs through the same orchestrator as live traffic, so pre-warming a
    query is just searching for it.

    Example:
        ```python
        maintenance = MaintenanceService(orchestrator)
        stats = await maintenance.run_cache_rebuild()
        # {"expired_cleaned": 3, "prewarmed": 42, "errors": 0}
        ```
    """

    def __init__(self, orchestrator: SearchOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def run_cache_rebuild(self, prewarm_limit: int = TOP_QUERIES_TO_PREWARM) -> dict[str, int]:
        """Sweep expired entries, then pre-warm the most popular queries.

        Failures are counted and logged; the job itself never raises.

        Args:
            prewarm_limit: Maximum number of popular queries to replay

        Returns:
            Dictionary with expired_cleaned, prewarmed and errors
        """
        stats = {"expired_cleaned": 0, "prewarmed": 0, "errors": 0}

        try:
            stats["expired_cleaned"] = await self._orchestrator.cache.sweep_expired()
        except ContentResolverError as e:
            logger.error(f"Failed to clean up expired cache: {e}")
            stats["errors"] += 1

        try:
            popular = await self._orchestrator.search_logs.popular_queries(
                days=PREWARM_WINDOW_DAYS, limit=prewarm_limit
            )
        except ContentResolverError as e:
            logger.error(f"Failed to load popular queries: {e}")
            stats["errors"] += 1
            popular = []

        for row in popular:
            query, entity_type = row["normalized_query"], EntityType(row["entity_type"])
            try:
                await self._orchestrator.search(query, entity_type, limit=1, log=False)
                stats["prewarmed"] += 1
            except ContentResolverError as e:
                logger.error(f"Failed to prewarm {entity_type.value} query {query!r}: {e}")
                stats["errors"] += 1

        await self._orchestrator.drain()
        logger.info(f"Cache rebuild completed: {stats}")
        return stats

    async def invalidate_entity_type(self, entity_type: EntityType) -> int:
        """Drop every cached query of one kind from both tiers.

        Returns:
            Number of persistent entries removed
        """
        removed = await self._orchestrator.cache.invalidate_entity_type(entity_type)
        logger.info(f"Invalidated {removed} cached {entity_type.value} queries")
        return removed

    async def duplicate_report(
        self, entity_type: EntityType, threshold: float | None = None
    ) -> list[DuplicateCandidate]:
        """Near-duplicate canonical entities of one kind (read-only)."""
        return await self._orchestrator.engine.find_near_duplicates(entity_type, threshold=threshold)
