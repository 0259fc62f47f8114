"""Search orchestration.

Ties the cache, the guarded provider call, reconciliation and persistence
into one request/response cycle:

    START -> CACHE_CHECK -> HIT -> DONE
                         -> MISS -> RATE_CHECK -> DENIED -> DEGRADED_DONE
                                               -> FETCH -> FAIL -> DEGRADED_DONE
                                                        -> OK -> RECONCILE -> PERSIST -> REREAD -> CACHE_WRITE -> DONE

Only ValidationError leaves ``search``; every other failure degrades to
fewer (or fallback) results.
"""

import asyncio
import time
from dataclasses import dataclass

from loguru import logger

from content_resolver.config import settings
from content_resolver.database import Database
from content_resolver.entities import EntityType, NormalizedEntity, RawRecord, SearchLogEntry, SearchOutcome
from content_resolver.errors import (
    LoggingError,
    PersistenceError,
    ProviderError,
    RateLimitExceeded,
    ValidationError,
)
from content_resolver.protocols import EntityProvider, EphemeralStore
from content_resolver.repositories.cache_repository import SqlCacheRepository
from content_resolver.repositories.entity_repository import EntityRepository
from content_resolver.repositories.search_log_repository import SearchLogRepository
from content_resolver.repositories.source_repository import ExternalSourceRepository
from content_resolver.repositories.static_provider import StaticProvider
from content_resolver.services.cache_service import CacheHierarchy
from content_resolver.services.normalization_service import NormalizationEngine
from content_resolver.services.provider_registry import ProviderRegistry
from content_resolver.services.resilience import ProviderGuard
from content_resolver.services.single_flight import SingleFlight
from content_resolver.utils.normalization import normalize_for

MAX_LIMIT = 100
# Ids kept per cached query; callers slice their own limit from it.
MAX_CACHED_RESULTS = 100


@dataclass(frozen=True)
class _Resolution:
    """Shared outcome of one cache miss (what single-flight followers receive)."""

    entities: list[NormalizedEntity]
    provider: str
    degraded: bool


class SearchOrchestrator:
    """Cache-first resolution of search queries.

    Example:
        ```python
        orchestrator = SearchOrchestrator.create(database, registry, ephemeral=store)

        outcome = await orchestrator.search("Example University", EntityType.ORGANIZATION)
        print(outcome.cache_hit, [e.name for e in outcome.results])
        ```
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: CacheHierarchy,
        engine: NormalizationEngine,
        entities: EntityRepository,
        sources: ExternalSourceRepository,
        search_logs: SearchLogRepository,
        guard: ProviderGuard,
        fallback: EntityProvider | None = None,
        fallback_enabled: bool | None = None,
        max_persist: int | None = None,
        single_flight: bool | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            registry: Providers by name (required).
            cache: Two-tier cache (required).
            engine: Reconciliation engine (required).
            entities: Canonical store, for re-reads.
            sources: External sources, for parent lookup and last_sync.
            search_logs: Analytics log.
            guard: Rate limiter + retry policy around provider calls.
            fallback: Provider used for degraded answers. Defaults to StaticProvider.
            fallback_enabled: Serve fallback data on provider failure. Defaults to settings.
            max_persist: Records reconciled per miss. Defaults to settings.
            single_flight: Coalesce concurrent identical misses. Defaults to settings.
        """
        self._registry = registry
        self._cache = cache
        self._engine = engine
        self._entities = entities
        self._sources = sources
        self._search_logs = search_logs
        self._guard = guard
        self._fallback = fallback or StaticProvider()
        self._fallback_enabled = settings.search_fallback_enabled if fallback_enabled is None else fallback_enabled
        self._max_persist = settings.search_max_persist if max_persist is None else max_persist
        self._single_flight = settings.search_single_flight if single_flight is None else single_flight
        self._flights: SingleFlight[_Resolution] = SingleFlight()
        self._log_tasks: set[asyncio.Task] = set()

    @classmethod
    def create(
        cls,
        database: Database,
        registry: ProviderRegistry,
        ephemeral: EphemeralStore | None = None,
        guard: ProviderGuard | None = None,
        **options,
    ) -> "SearchOrchestrator":
        """Factory method wiring the SQL repositories around one Database.

        Args:
            database: Persistent store (required).
            registry: Providers by name (required).
            ephemeral: Tier-1 store, or None for tier 2 only.
            guard: Provider guard. If None, built from settings.
            **options: Forwarded to the constructor (fallback_enabled, max_persist, ...)

        Returns:
            Configured SearchOrchestrator
        """
        entities = EntityRepository(database)
        sources = ExternalSourceRepository(database)
        return cls(
            registry=registry,
            cache=CacheHierarchy(persistent=SqlCacheRepository(database), ephemeral=ephemeral),
            engine=NormalizationEngine(entities=entities, sources=sources),
            entities=entities,
            sources=sources,
            search_logs=SearchLogRepository(database),
            guard=guard or ProviderGuard.create(),
            **options,
        )

    async def search(
        self,
        query: str,
        entity_type: EntityType = EntityType.ORGANIZATION,
        provider_name: str | None = None,
        limit: int = 20,
        user_id: str | None = None,
        log: bool = True,
    ) -> SearchOutcome:
        """Resolve a query, from cache when possible.

        Business logic:
        1. Normalize the query and validate the request
        2. Cache hit -> load the ids from the store, return with cache_hit=True
        3. Miss -> guarded provider fetch (coalesced per query/type/provider)
        4. Failure or empty answer -> degraded result (empty or fallback data)
        5. Reconcile up to max_persist records into the canonical store
        6. Re-read from the store, write both cache tiers
        7. Log the search in the background (unless log=False) and return

        Args:
            query: Raw user query
            entity_type: Kind of entity searched
            provider_name: Registered provider. If None, the registry default.
            limit: Maximum results returned (1-100)
            user_id: Optional analytics attribution
            log: Write a search-log row. Cache pre-warming passes False so it
                does not count as user traffic.

        Returns:
            SearchOutcome with results sliced to ``limit``

        Raises:
            ValidationError: Empty query, limit out of range or unknown provider
        """
        started = time.perf_counter()

        normalized = normalize_for(entity_type, query or "")
        if not normalized:
            raise ValidationError("Query must not be empty")
        if not 1 <= limit <= MAX_LIMIT:
            raise ValidationError(f"Limit must be between 1 and {MAX_LIMIT}, got {limit}")
        provider = self._registry.get(provider_name) if provider_name else self._registry.get_default()

        cached = await self._from_cache(normalized, entity_type)
        if cached is not None:
            return self._finish(
                query, normalized, entity_type, user_id, started, cached, cache_hit=True, limit=limit, log=log
            )

        if self._single_flight:
            resolution = await self._flights.do(
                (normalized, entity_type, provider.name),
                lambda: self._resolve_miss(query, normalized, entity_type, provider),
            )
        else:
            resolution = await self._resolve_miss(query, normalized, entity_type, provider)

        return self._finish(
            query,
            normalized,
            entity_type,
            user_id,
            started,
            resolution.entities,
            cache_hit=False,
            provider=resolution.provider,
            degraded=resolution.degraded,
            limit=limit,
            log=log,
        )

    async def _from_cache(self, normalized: str, entity_type: EntityType) -> list[NormalizedEntity] | None:
        hit = await self._cache.get(normalized, entity_type)
        if hit is None:
            return None
        try:
            return await self._entities.get_many(hit.result_ids)
        except PersistenceError as e:
            logger.error(f"Could not load cached ids for {normalized!r}, treating as miss: {e}")
            return None

    async def _resolve_miss(
        self, query: str, normalized: str, entity_type: EntityType, provider: EntityProvider
    ) -> _Resolution:
        try:
            records = await self._guard.call(lambda: provider.fetch(query, entity_type))
        except RateLimitExceeded as e:
            logger.warning(f"Provider {provider.name} rate limited: {e}")
            return await self._degrade(query, entity_type, provider)
        except ProviderError as e:
            logger.warning(f"Provider {provider.name} failed for {query!r}: {e}")
            return await self._degrade(query, entity_type, provider)

        if not records:
            logger.info(f"Provider {provider.name} returned nothing for {query!r}")
            return await self._degrade(query, entity_type, provider)

        try:
            reconciled = await self._persist(records[: self._max_persist], entity_type, provider)
            entities = await self._reread(normalized, entity_type, reconciled)
            await self._sources.touch_last_sync(provider.name)
        except PersistenceError as e:
            logger.error(f"Could not persist results for {query!r}, returning them unstored: {e}")
            return _Resolution(
                entities=[NormalizedEntity.transient(r, entity_type) for r in records[:MAX_CACHED_RESULTS]],
                provider=provider.name,
                degraded=True,
            )

        if entities:
            try:
                await self._cache.set(normalized, entity_type, [e.id for e in entities])
            except PersistenceError as e:
                logger.error(f"Cache write failed for {normalized!r}: {e}")

        return _Resolution(entities=entities, provider=provider.name, degraded=False)

    async def _degrade(self, query: str, entity_type: EntityType, provider: EntityProvider) -> _Resolution:
        if not self._fallback_enabled:
            return _Resolution(entities=[], provider=provider.name, degraded=True)

        records = await self._fallback.search(query, entity_type)
        logger.info(f"Serving {len(records)} fallback records from {self._fallback.name} for {query!r}")
        return _Resolution(
            entities=[NormalizedEntity.transient(r, entity_type) for r in records[:MAX_CACHED_RESULTS]],
            provider=self._fallback.name,
            degraded=True,
        )

    async def _persist(
        self, records: list[RawRecord], entity_type: EntityType, provider: EntityProvider
    ) -> list[NormalizedEntity]:
        parents: dict[tuple[str, str], str | None] = {}
        reconciled = []
        for record in records:
            parent_id = None
            if record.parent_external_id and entity_type.parent is not None:
                key = (record.provider, record.parent_external_id)
                if key not in parents:
                    parents[key] = await self._find_parent(record, entity_type.parent)
                parent_id = parents[key]

            try:
                entity = await self._engine.reconcile_record(
                    record, entity_type, parent_id=parent_id, api_endpoint=provider.endpoint
                )
            except ValidationError as e:
                logger.warning(f"Skipping record {record.external_id!r} from {record.provider}: {e}")
                continue
            reconciled.append(entity)
        return reconciled

    async def _find_parent(self, record: RawRecord, parent_type: EntityType) -> str | None:
        source = await self._sources.find_by_name(record.provider)
        if source is None:
            return None
        parent = await self._entities.find_by_external_id(parent_type, source.id, record.parent_external_id)
        return parent.id if parent else None

    async def _reread(
        self, normalized: str, entity_type: EntityType, reconciled: list[NormalizedEntity]
    ) -> list[NormalizedEntity]:
        """Answer from the store, not from the in-memory reconcile results."""
        stored = await self._entities.search_canonical(entity_type, normalized, MAX_CACHED_RESULTS)
        seen = {e.id for e in stored}
        missing = [ref for ref in dict.fromkeys(e.canonical_ref for e in reconciled) if ref not in seen]
        if missing:
            stored.extend(await self._entities.get_many(missing))
        return stored[:MAX_CACHED_RESULTS]

    def _finish(
        self,
        query: str,
        normalized: str,
        entity_type: EntityType,
        user_id: str | None,
        started: float,
        entities: list[NormalizedEntity],
        cache_hit: bool,
        provider: str | None = None,
        degraded: bool = False,
        limit: int = 20,
        log: bool = True,
    ) -> SearchOutcome:
        results = entities[:limit]
        latency_ms = round((time.perf_counter() - started) * 1000, 2)
        if log:
            self._log_search(
                SearchLogEntry(
                    raw_query=query,
                    normalized_query=normalized,
                    entity_type=entity_type,
                    cache_hit=cache_hit,
                    result_count=len(results),
                    latency_ms=int(latency_ms),
                    user_id=user_id,
                )
            )
        return SearchOutcome(
            results=results,
            cache_hit=cache_hit,
            latency_ms=latency_ms,
            total_results=len(results),
            provider=provider,
            degraded=degraded,
        )

    def _log_search(self, entry: SearchLogEntry) -> None:
        task = asyncio.create_task(self._write_log(entry))
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)

    async def _write_log(self, entry: SearchLogEntry) -> None:
        try:
            await self._search_logs.create(entry)
        except Exception as e:
            # Log writes never fail a search.
            error = LoggingError(f"Search log write failed for {entry.normalized_query!r}: {e}")
            logger.warning(error.message)

    async def drain(self) -> None:
        """Wait for pending search-log writes and cache hit counts."""
        if self._log_tasks:
            await asyncio.gather(*self._log_tasks, return_exceptions=True)
        await self._cache.drain()

    async def get_entity(self, entity_id: str) -> NormalizedEntity | None:
        """Find one stored entity by id.

        Raises:
            PersistenceError: If the store is unreachable
        """
        return await self._entities.find_by_id(entity_id)

    async def check_provider_health(self, name: str) -> dict:
        """Check whether a provider answers. Never raises.

        Returns:
            Dictionary with provider, registered and available
        """
        if not self._registry.has(name):
            return {"provider": name, "registered": False, "available": False}
        available = await self._registry.get(name).is_available()
        return {"provider": name, "registered": True, "available": available}

    @property
    def registry(self) -> ProviderRegistry:
        """Get the provider registry."""
        return self._registry

    @property
    def cache(self) -> CacheHierarchy:
        """Get the cache hierarchy."""
        return self._cache

    @property
    def engine(self) -> NormalizationEngine:
        """Get the normalization engine."""
        return self._engine

    @property
    def guard(self) -> ProviderGuard:
        """Get the provider guard."""
        return self._guard

    @property
    def search_logs(self) -> SearchLogRepository:
        """Get the search log repository."""
        return self._search_logs
