"""
Tests for the two-tier search cache.
"""

import pytest

from content_resolver.entities import EntityType
from content_resolver.errors import PersistenceError
from content_resolver.services import CacheHierarchy, cache_key

ORG = EntityType.ORGANIZATION


@pytest.fixture
def hierarchy(cache_repository, ephemeral, clock) -> CacheHierarchy:
    return CacheHierarchy(persistent=cache_repository, ephemeral=ephemeral, ephemeral_ttl=3600, clock=clock)


def test_cache_key_includes_entity_type():
    assert cache_key("stanford", ORG) == "search:ORGANIZATION:stanford"
    assert cache_key("stanford", EntityType.PROGRAM) != cache_key("stanford", ORG)


async def test_miss_returns_none(hierarchy):
    assert await hierarchy.get("nothing here", ORG) is None


async def test_set_writes_both_tiers_and_keeps_order(hierarchy, cache_repository, ephemeral, clock):
    await hierarchy.set("stanford", ORG, ["c", "a", "b"])

    assert ephemeral.data[cache_key("stanford", ORG)] == ["c", "a", "b"]
    assert ephemeral.ttls[cache_key("stanford", ORG)] == 3600
    entry = await cache_repository.find_active("stanford", ORG, clock())
    assert entry.result_ids == ["c", "a", "b"]
    assert entry.result_count == 3

    hit = await hierarchy.get("stanford", ORG)
    assert hit.tier == "ephemeral"
    assert hit.result_ids == ["c", "a", "b"]


async def test_tier2_hit_backfills_tier1_and_counts(hierarchy, cache_repository, ephemeral, clock):
    await hierarchy.set("stanford", ORG, ["a"])
    ephemeral.data.clear()

    hit = await hierarchy.get("stanford", ORG)

    assert hit.tier == "persistent"
    assert hit.result_ids == ["a"]
    assert ephemeral.data[cache_key("stanford", ORG)] == ["a"]
    entry = await cache_repository.find_active("stanford", ORG, clock())
    assert entry.hit_count == 1


async def test_tier1_hit_counts_on_tier2_entry(hierarchy, cache_repository, clock):
    await hierarchy.set("stanford", ORG, ["a"])

    first = await hierarchy.get("stanford", ORG)
    second = await hierarchy.get("stanford", ORG)
    await hierarchy.drain()

    assert first.tier == second.tier == "ephemeral"
    entry = await cache_repository.find_active("stanford", ORG, clock())
    assert entry.hit_count == 2


async def test_tier1_hit_survives_failed_hit_count(hierarchy, cache_repository, monkeypatch):
    async def broken(*args, **kwargs):
        raise PersistenceError("store down")

    monkeypatch.setattr(cache_repository, "increment_hit_by_key", broken)
    await hierarchy.set("stanford", ORG, ["a"])

    hit = await hierarchy.get("stanford", ORG)
    await hierarchy.drain()

    assert hit.result_ids == ["a"]


async def test_zero_ttl_entry_expires_at_once(cache_repository, clock):
    await cache_repository.upsert("stanford", ORG, ["a"], clock(), ttl_hours=0)

    assert await cache_repository.find_active("stanford", ORG, clock()) is None


async def test_tier1_outage_falls_through_to_tier2(hierarchy, ephemeral):
    await hierarchy.set("stanford", ORG, ["a"])
    ephemeral.available = False

    hit = await hierarchy.get("stanford", ORG)

    assert hit.tier == "persistent"
    assert hit.result_ids == ["a"]


async def test_works_without_tier1(cache_repository, clock):
    persistent_only = CacheHierarchy(persistent=cache_repository, ephemeral=None, clock=clock)
    await persistent_only.set("stanford", ORG, ["a"])

    hit = await persistent_only.get("stanford", ORG)

    assert hit.tier == "persistent"
    assert (await persistent_only.stats())["tier1_available"] is False


async def test_expired_entries_are_misses_until_swept(hierarchy, ephemeral, clock):
    await hierarchy.set("stanford", ORG, ["a"])
    ephemeral.data.clear()

    clock.advance(hours=25)

    assert await hierarchy.get("stanford", ORG) is None
    assert await hierarchy.sweep_expired() == 1
    assert await hierarchy.sweep_expired() == 0


async def test_rewrite_replaces_ids_and_extends_expiry(hierarchy, cache_repository, clock):
    await hierarchy.set("stanford", ORG, ["a"])
    clock.advance(hours=20)
    await hierarchy.set("stanford", ORG, ["b", "c"])
    clock.advance(hours=20)

    entry = await cache_repository.find_active("stanford", ORG, clock())

    assert entry.result_ids == ["b", "c"]
    assert entry.hit_count == 1


async def test_empty_result_is_cached(hierarchy, ephemeral):
    await hierarchy.set("zzzz", ORG, [])
    ephemeral.data.clear()

    hit = await hierarchy.get("zzzz", ORG)

    assert hit is not None
    assert hit.result_ids == []


async def test_entity_types_are_cached_separately(hierarchy):
    await hierarchy.set("physics", ORG, ["org-1"])

    assert await hierarchy.get("physics", EntityType.ITEM) is None


async def test_invalidate_removes_both_tiers(hierarchy, ephemeral):
    await hierarchy.set("stanford", ORG, ["a"])

    assert await hierarchy.invalidate("stanford", ORG) is True
    assert ephemeral.data == {}
    assert await hierarchy.get("stanford", ORG) is None
    assert await hierarchy.invalidate("stanford", ORG) is False


async def test_invalidate_entity_type(hierarchy, ephemeral):
    await hierarchy.set("stanford", ORG, ["a"])
    await hierarchy.set("oxford", ORG, ["b"])
    await hierarchy.set("mba", EntityType.PROGRAM, ["c"])

    assert await hierarchy.invalidate_entity_type(ORG) == 2

    assert list(ephemeral.data) == [cache_key("mba", EntityType.PROGRAM)]
    assert await hierarchy.get("mba", EntityType.PROGRAM) is not None


async def test_stats(hierarchy, clock):
    await hierarchy.set("stanford", ORG, ["a"])
    await hierarchy.set("oxford", ORG, ["b"])
    await hierarchy.set("mba", EntityType.PROGRAM, ["c"])
    clock.advance(hours=25)

    stats = await hierarchy.stats()

    assert stats["tier1_available"] is True
    assert stats["tier2"]["total"] == 3
    assert stats["tier2"]["expired"] == 3
    assert {row["entity_type"]: row["count"] for row in stats["tier2"]["by_entity_type"]} == {
        "ORGANIZATION": 2,
        "PROGRAM": 1,
    }


async def test_persistent_read_failure_is_a_miss(hierarchy, cache_repository, ephemeral, monkeypatch):
    async def broken(*args, **kwargs):
        raise PersistenceError("store down")

    monkeypatch.setattr(cache_repository, "find_active", broken)

    assert await hierarchy.get("stanford", ORG) is None


async def test_persistent_write_failure_propagates(hierarchy, cache_repository, ephemeral, monkeypatch):
    async def broken(*args, **kwargs):
        raise PersistenceError("store down")

    monkeypatch.setattr(cache_repository, "upsert", broken)

    with pytest.raises(PersistenceError):
        await hierarchy.set("stanford", ORG, ["a"])
    assert ephemeral.data == {}
