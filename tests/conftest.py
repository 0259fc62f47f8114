"""Shared fixtures: SQLite store, fake tier-1 store, fake providers, clocks."""

import asyncio
from datetime import datetime, timedelta

import pytest

from content_resolver.database import Database
from content_resolver.entities import EntityType, RawRecord
from content_resolver.repositories import (
    EntityRepository,
    ExternalSourceRepository,
    SearchLogRepository,
    SqlCacheRepository,
)
from content_resolver.services import (
    NormalizationEngine,
    ProviderGuard,
    ProviderRegistry,
    RateLimiter,
    ResilientFetcher,
    SearchOrchestrator,
)
from content_resolver.utils.normalization import normalize_for


class MutableClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeEphemeralStore:
    """Dict-backed EphemeralStore; ``available = False`` simulates an outage."""

    def __init__(self) -> None:
        self.data: dict[str, list[str]] = {}
        self.ttls: dict[str, int] = {}
        self.available = True

    async def get_ids(self, key: str) -> list[str] | None:
        if not self.available:
            return None
        ids = self.data.get(key)
        return list(ids) if ids is not None else None

    async def set_ids(self, key: str, ids: list[str], ttl: int) -> None:
        if self.available:
            self.data[key] = list(ids)
            self.ttls[key] = ttl

    async def delete(self, key: str) -> bool:
        if not self.available:
            return False
        self.ttls.pop(key, None)
        return self.data.pop(key, None) is not None

    async def health_check(self) -> bool:
        return self.available


class FakeProvider:
    """Configurable EntityProvider.

    Args:
        name: Registry key
        records: Records returned by fetch, per entity type or for every type
        error: Raised by fetch instead of returning records
        gate: When set, fetch waits on it (to hold a call in flight)
    """

    def __init__(
        self,
        name: str = "fake",
        records: list[RawRecord] | dict[EntityType, list[RawRecord]] | None = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.endpoint = f"http://{name}.test"
        self.records = records if records is not None else []
        self.error = error
        self.gate = gate
        self.calls: list[tuple[str, EntityType]] = []

    async def fetch(self, query: str, entity_type: EntityType = EntityType.ORGANIZATION) -> list[RawRecord]:
        self.calls.append((query, entity_type))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if isinstance(self.records, dict):
            return list(self.records.get(entity_type, []))
        return list(self.records)

    async def search(self, query: str, entity_type: EntityType = EntityType.ORGANIZATION) -> list[RawRecord]:
        try:
            return await self.fetch(query, entity_type)
        except Exception:
            return []

    async def is_available(self) -> bool:
        return self.error is None


def make_record(
    name: str,
    external_id: str | None = None,
    provider: str = "fake",
    entity_type: EntityType = EntityType.ORGANIZATION,
    **fields,
) -> RawRecord:
    """Build a provider record the way a provider's own mapping would."""
    normalized = normalize_for(entity_type, name)
    return RawRecord(
        external_id=external_id or f"{provider}:{normalized}",
        name=name,
        normalized_name=normalized,
        provider=provider,
        **fields,
    )


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def ephemeral() -> FakeEphemeralStore:
    return FakeEphemeralStore()


@pytest.fixture
async def database(tmp_path):
    """Fresh SQLite file per test, schema created."""
    db = Database.create(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def entities(database) -> EntityRepository:
    return EntityRepository(database)


@pytest.fixture
def sources(database) -> ExternalSourceRepository:
    return ExternalSourceRepository(database)


@pytest.fixture
def search_logs(database) -> SearchLogRepository:
    return SearchLogRepository(database)


@pytest.fixture
def cache_repository(database) -> SqlCacheRepository:
    return SqlCacheRepository(database, ttl_hours=24)


@pytest.fixture
def engine(entities, sources) -> NormalizationEngine:
    return NormalizationEngine(entities=entities, sources=sources, similarity_threshold=0.8)


@pytest.fixture
def build_orchestrator(database, sleeps):
    """Factory for an orchestrator over the test database.

    The first provider is the registry default. Retries are off unless
    asked for, and never really sleep.
    """

    def build(
        *providers: FakeProvider,
        ephemeral: FakeEphemeralStore | None = None,
        max_requests_per_hour: int = 100,
        max_retries: int = 0,
        **options,
    ) -> SearchOrchestrator:
        registry = ProviderRegistry(default=providers[0].name)
        for provider in providers:
            registry.register(provider)
        guard = ProviderGuard(
            rate_limiter=RateLimiter(max_requests_per_hour=max_requests_per_hour),
            fetcher=ResilientFetcher(max_retries=max_retries, timeout=5.0, sleep=sleeps),
        )
        options.setdefault("fallback_enabled", False)
        return SearchOrchestrator.create(database, registry, ephemeral=ephemeral, guard=guard, **options)

    return build
