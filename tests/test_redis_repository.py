"""
Tests for the Redis-backed ephemeral tier.
"""

from redis.exceptions import ConnectionError as RedisConnectionError

from content_resolver.protocols import EphemeralStore
from content_resolver.repositories import RedisEphemeralStore


class StubRedis:
    """The slice of redis.asyncio.Redis the store uses."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.values.get(key)

    async def setex(self, key, ttl, value):
        self.values[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        return 1 if self.values.pop(key, None) is not None else 0

    async def ping(self):
        return True


class DownRedis:
    async def get(self, key):
        raise RedisConnectionError("connection refused")

    async def setex(self, key, ttl, value):
        raise RedisConnectionError("connection refused")

    async def delete(self, key):
        raise RedisConnectionError("connection refused")

    async def ping(self):
        raise RedisConnectionError("connection refused")


async def test_round_trip_keeps_order_and_ttl():
    client = StubRedis()
    store = RedisEphemeralStore(client, default_ttl=300)

    await store.set_ids("search:ORGANIZATION:iit", ["b", "a"], ttl=60)

    assert await store.get_ids("search:ORGANIZATION:iit") == ["b", "a"]
    assert client.ttls["search:ORGANIZATION:iit"] == 60
    assert await store.get_ids("search:ORGANIZATION:other") is None


async def test_zero_ttl_uses_default():
    client = StubRedis()
    store = RedisEphemeralStore(client, default_ttl=300)

    await store.set_ids("k", [], ttl=0)

    assert client.ttls["k"] == 300
    assert await store.get_ids("k") == []


async def test_malformed_entry_is_a_miss():
    client = StubRedis()
    client.values["k"] = "{not json"
    client.values["obj"] = '{"a": 1}'
    store = RedisEphemeralStore(client)

    assert await store.get_ids("k") is None
    assert await store.get_ids("obj") is None


async def test_delete_and_health():
    client = StubRedis()
    store = RedisEphemeralStore(client)
    await store.set_ids("k", ["a"], ttl=10)

    assert await store.delete("k") is True
    assert await store.delete("k") is False
    assert await store.health_check() is True


async def test_outage_never_raises():
    store = RedisEphemeralStore(DownRedis())

    assert await store.get_ids("k") is None
    await store.set_ids("k", ["a"], ttl=10)
    assert await store.delete("k") is False
    assert await store.health_check() is False


def test_satisfies_protocol():
    assert isinstance(RedisEphemeralStore(StubRedis()), EphemeralStore)
