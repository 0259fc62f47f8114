"""
Tests for the search pipeline: cache, guarded fetch, reconciliation, degradation.
"""

import asyncio

import httpx
import pytest

from content_resolver.entities import EntityType
from content_resolver.errors import PersistenceError, UnknownProviderError, ValidationError
from content_resolver.repositories import StaticProvider
from content_resolver.services import cache_key

from .conftest import FakeProvider, make_record

ORG = EntityType.ORGANIZATION


class TestCacheFirst:
    async def test_cold_then_warm(self, build_orchestrator, ephemeral):
        provider = FakeProvider(records=[make_record("Example University", country="X")])
        orchestrator = build_orchestrator(provider, ephemeral=ephemeral)

        cold = await orchestrator.search("Example University", ORG)
        warm = await orchestrator.search("  example   UNIVERSITY ", ORG)

        assert cold.cache_hit is False
        assert cold.provider == "fake"
        assert cold.degraded is False
        assert [e.name for e in cold.results] == ["Example University"]
        assert cold.results[0].country == "X"

        assert warm.cache_hit is True
        assert warm.provider is None
        assert [e.id for e in warm.results] == [e.id for e in cold.results]
        assert len(provider.calls) == 1
        assert ephemeral.data[cache_key("example university", ORG)] == [cold.results[0].id]

    async def test_tier2_answers_when_tier1_is_down(self, build_orchestrator, ephemeral):
        provider = FakeProvider(records=[make_record("Example University")])
        orchestrator = build_orchestrator(provider, ephemeral=ephemeral)
        await orchestrator.search("Example University", ORG)

        ephemeral.available = False
        outcome = await orchestrator.search("Example University", ORG)

        assert outcome.cache_hit is True
        assert len(provider.calls) == 1

    async def test_limit_slices_cached_results(self, build_orchestrator):
        records = [make_record(f"Example College {n:02d}") for n in range(30)]
        provider = FakeProvider(records=records)
        orchestrator = build_orchestrator(provider, max_persist=50)

        small = await orchestrator.search("Example College", ORG, limit=5)
        large = await orchestrator.search("Example College", ORG, limit=50)

        assert small.total_results == 5
        assert [e.name for e in small.results] == [f"Example College {n:02d}" for n in range(5)]
        assert large.cache_hit is True
        assert large.total_results == 30

    async def test_max_persist_caps_reconciled_records(self, build_orchestrator, entities):
        provider = FakeProvider(records=[make_record(f"Example College {n:02d}") for n in range(10)])
        orchestrator = build_orchestrator(provider, max_persist=3)

        outcome = await orchestrator.search("Example College", ORG, limit=20)

        assert outcome.total_results == 3
        assert len(await entities.list_canonical(ORG)) == 3


class TestReconciliation:
    async def test_results_are_canonical_and_unique(self, build_orchestrator, entities):
        provider = FakeProvider(
            records=[
                make_record("Example University", external_id="e-1"),
                make_record("EXAMPLE UNIVERSITY", external_id="e-2"),
            ]
        )
        orchestrator = build_orchestrator(provider)

        outcome = await orchestrator.search("Example", ORG)

        assert len(outcome.results) == 1
        assert outcome.results[0].is_canonical
        assert len(await entities.find_duplicates_of(outcome.results[0].id)) == 1

    async def test_second_source_resolves_to_existing_canonical(self, build_orchestrator, entities):
        first = FakeProvider("alpha", records=[make_record("Example University", provider="alpha")])
        second = FakeProvider("beta", records=[make_record("Example University", provider="beta")])
        orchestrator = build_orchestrator(first, second)

        original = await orchestrator.search("Example University", ORG)
        again = await orchestrator.search("Example Univ", ORG, provider_name="beta")

        assert [e.id for e in again.results] == [e.id for e in original.results]
        assert again.provider == "beta"
        [duplicate] = await entities.find_duplicates_of(original.results[0].id)
        assert duplicate.provider == "beta"

    async def test_invalid_records_are_skipped(self, build_orchestrator):
        provider = FakeProvider(
            records=[make_record("?!", external_id="bad"), make_record("Example University")]
        )
        orchestrator = build_orchestrator(provider)

        outcome = await orchestrator.search("Example", ORG)

        assert [e.name for e in outcome.results] == ["Example University"]
        assert outcome.degraded is False

    async def test_hierarchy_records_link_to_stored_parent(self, build_orchestrator):
        orchestrator = build_orchestrator(StaticProvider())

        [organization] = (await orchestrator.search("University of Delhi", ORG)).results
        programs = await orchestrator.search("B.Tech", EntityType.PROGRAM)

        assert sorted(p.normalized_name for p in programs.results) == ["btech cs", "btech me"]
        assert all(p.parent_id == organization.id for p in programs.results)

    async def test_unknown_parent_is_left_unlinked(self, build_orchestrator):
        orchestrator = build_orchestrator(StaticProvider())

        programs = await orchestrator.search("MBA", EntityType.PROGRAM)

        assert [p.parent_id for p in programs.results] == [None]


class TestDegradation:
    async def test_provider_failure_returns_empty_degraded(self, build_orchestrator, ephemeral):
        provider = FakeProvider(error=httpx.ConnectError("down"))
        orchestrator = build_orchestrator(provider, ephemeral=ephemeral)

        outcome = await orchestrator.search("Example", ORG)

        assert outcome.results == []
        assert outcome.degraded is True
        assert outcome.cache_hit is False
        assert await orchestrator.cache.get("example", ORG) is None

    async def test_transient_failures_are_retried(self, build_orchestrator, sleeps):
        provider = FakeProvider(error=httpx.ConnectError("down"))
        orchestrator = build_orchestrator(provider, max_retries=2)

        outcome = await orchestrator.search("Example", ORG)

        assert outcome.degraded is True
        assert len(provider.calls) == 3
        assert sleeps.delays == [2, 4]

    async def test_fallback_data_is_served_but_never_stored(self, build_orchestrator, entities):
        provider = FakeProvider(error=httpx.ConnectError("down"))
        orchestrator = build_orchestrator(provider, fallback_enabled=True)

        outcome = await orchestrator.search("IIT", ORG)
        again = await orchestrator.search("IIT", ORG)

        assert sorted(e.name for e in outcome.results) == ["IIT Bombay", "IIT Delhi"]
        assert all(e.id == f"static:{e.external_id}" for e in outcome.results)
        assert outcome.provider == "static"
        assert outcome.degraded is True
        assert again.cache_hit is False
        assert len(provider.calls) == 2
        assert await entities.list_canonical(ORG) == []

    async def test_empty_provider_answer_is_not_cached(self, build_orchestrator):
        provider = FakeProvider(records=[])
        orchestrator = build_orchestrator(provider)

        first = await orchestrator.search("zzzz", ORG)
        second = await orchestrator.search("zzzz", ORG)

        assert first.results == [] and second.results == []
        assert second.cache_hit is False
        assert len(provider.calls) == 2

    async def test_rate_limit_denies_without_calling_provider(self, build_orchestrator):
        provider = FakeProvider(records=[make_record("Example University")])
        orchestrator = build_orchestrator(provider, max_requests_per_hour=1)

        await orchestrator.search("Example University", ORG)
        denied = await orchestrator.search("Other", ORG)
        cached = await orchestrator.search("Example University", ORG)

        assert denied.degraded is True
        assert denied.results == []
        assert cached.cache_hit is True
        assert len(provider.calls) == 1
        assert orchestrator.guard.rate_limiter.status().remaining == 0

    async def test_persistence_failure_returns_unstored_results(self, build_orchestrator, monkeypatch):
        provider = FakeProvider(records=[make_record("Example University")])
        orchestrator = build_orchestrator(provider)

        async def broken(*args, **kwargs):
            raise PersistenceError("disk full")

        monkeypatch.setattr(orchestrator.engine, "reconcile_record", broken)

        outcome = await orchestrator.search("Example University", ORG)

        assert [e.name for e in outcome.results] == ["Example University"]
        assert outcome.degraded is True
        assert outcome.results[0].id == "fake:example university"
        assert await orchestrator.cache.get("example university", ORG) is None


class TestValidation:
    @pytest.mark.parametrize("query", ["", "   ", "?!"])
    async def test_empty_query(self, build_orchestrator, query):
        provider = FakeProvider()
        orchestrator = build_orchestrator(provider)

        with pytest.raises(ValidationError):
            await orchestrator.search(query, ORG)
        assert provider.calls == []

    @pytest.mark.parametrize("limit", [0, 101])
    async def test_limit_out_of_range(self, build_orchestrator, limit):
        orchestrator = build_orchestrator(FakeProvider())

        with pytest.raises(ValidationError):
            await orchestrator.search("Example", ORG, limit=limit)

    async def test_unknown_provider(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeProvider())

        with pytest.raises(UnknownProviderError):
            await orchestrator.search("Example", ORG, provider_name="nope")


class TestSingleFlight:
    async def test_concurrent_identical_misses_fetch_once(self, build_orchestrator):
        gate = asyncio.Event()
        provider = FakeProvider(records=[make_record("Example University")], gate=gate)
        orchestrator = build_orchestrator(provider, single_flight=True)

        async def release():
            await asyncio.sleep(0.3)
            gate.set()

        outcomes, _ = await asyncio.gather(
            asyncio.gather(*(orchestrator.search("Example University", ORG) for _ in range(5))),
            release(),
        )

        assert len(provider.calls) == 1
        assert len({tuple(e.id for e in o.results) for o in outcomes}) == 1
        assert len(outcomes[0].results) == 1

    async def test_cancelled_leader_does_not_fail_its_followers(self, build_orchestrator):
        gate = asyncio.Event()
        provider = FakeProvider(records=[make_record("Example University")], gate=gate)
        orchestrator = build_orchestrator(provider, single_flight=True)

        leader = asyncio.create_task(orchestrator.search("Example University", ORG))
        while not provider.calls:
            await asyncio.sleep(0.01)
        follower = asyncio.create_task(orchestrator.search("Example University", ORG))
        await asyncio.sleep(0.2)

        leader.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leader
        gate.set()
        outcome = await follower

        assert [e.name for e in outcome.results] == ["Example University"]
        assert outcome.degraded is False
        assert len(provider.calls) == 2


class TestSearchLog:
    async def test_every_search_is_logged(self, build_orchestrator, search_logs):
        orchestrator = build_orchestrator(FakeProvider(records=[make_record("Example University")]))

        await orchestrator.search("Example University", ORG, user_id="u-1")
        await orchestrator.search("Example University", ORG, user_id="u-1")
        await orchestrator.drain()

        history = await search_logs.find_by_user("u-1")
        assert history["total"] == 2
        assert sorted(entry.cache_hit for entry in history["data"]) == [False, True]
        assert all(entry.normalized_query == "example university" for entry in history["data"])
        assert all(entry.result_count == 1 for entry in history["data"])

    async def test_log_failure_never_fails_a_search(self, build_orchestrator, monkeypatch):
        orchestrator = build_orchestrator(FakeProvider(records=[make_record("Example University")]))

        async def broken(entry):
            raise PersistenceError("log table locked")

        monkeypatch.setattr(orchestrator.search_logs, "create", broken)

        outcome = await orchestrator.search("Example University", ORG)
        await orchestrator.drain()

        assert len(outcome.results) == 1


class TestLookups:
    async def test_get_entity(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeProvider(records=[make_record("Example University")]))
        [entity] = (await orchestrator.search("Example University", ORG)).results

        assert await orchestrator.get_entity(entity.id) == entity
        assert await orchestrator.get_entity("missing") is None

    async def test_provider_health(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeProvider("up"), FakeProvider("down", error=RuntimeError("x")))

        assert await orchestrator.check_provider_health("up") == {
            "provider": "up",
            "registered": True,
            "available": True,
        }
        assert (await orchestrator.check_provider_health("down"))["available"] is False
        assert (await orchestrator.check_provider_health("nope"))["registered"] is False
