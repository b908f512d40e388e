"""Tests for the prefixed key-value client.

Store behaviour runs against fakeredis; error paths use scripted mocks.
"""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from simple_redis.models import ConnectionState
from simple_redis.redis_client import (
    NotConnectedError,
    SimpleRedisClient,
    StoreConnectionError,
    StoreError,
    SubscriptionUnavailableError,
)


class TestKeyValue:
    async def test_set_get_round_trip(self, client):
        await client.set("name", "redis")
        await client.set("answer", 42)
        await client.set("ratio", 0.5)

        assert await client.get("name") == "redis"
        assert await client.get("answer") == "42"
        assert await client.get("ratio") == "0.5"

    async def test_get_missing_key_returns_none(self, client):
        assert await client.get("missing") is None
        assert client.get_counts()["get"] == 1

    async def test_keys_are_stored_with_prefix(self, client):
        await client.set("user:1", "alice")

        assert await client.data_connection.get("test:user:1") == "alice"
        assert await client.data_connection.get("user:1") is None

    async def test_get_many(self, client):
        await client.set_many({"a": 1, "b": "two"})

        result = await client.get_many(["b", "missing", "a"])

        assert result == {"b": "two", "missing": None, "a": "1"}
        assert list(result) == ["b", "missing", "a"]
        assert client.get_counts()["get"] == 1

    async def test_get_many_empty(self, client):
        assert await client.get_many([]) == {}
        assert client.get_counts()["get"] == 0

    async def test_set_many_empty_is_noop(self, client):
        await client.set_many({})
        assert client.get_counts()["set"] == 0
        assert await client.keys("*") == []

    async def test_set_many_counts_once(self, client):
        await client.set_many({"a": 1, "b": 2, "c": 3})

        assert client.get_counts()["set"] == 1
        assert await client.get("c") == "3"

    async def test_keys_and_count_by_pattern(self, client):
        await client.set_many({"session:1": "x", "session:2": "y", "session:10": "z"})
        await client.set("user:1", "alice")

        assert set(await client.keys("session:*")) == {"session:1", "session:2", "session:10"}
        assert set(await client.keys("session:?")) == {"session:1", "session:2"}
        assert await client.count("session:*") == 3
        assert await client.count("nothing:*") == 0

    async def test_get_many_by_pattern(self, client):
        await client.set_many({"cfg:a": "1", "cfg:b": "2", "other": "3"})

        assert await client.get_many_by_pattern("cfg:*") == {"cfg:a": "1", "cfg:b": "2"}

    async def test_incr_decr(self, client):
        assert await client.incr("hits") == 1
        assert await client.incr_by("hits", 10) == 11
        assert await client.decr("hits") == 10
        assert await client.decr_by("hits", -5) == 15

        counts = client.get_counts()
        assert counts["incr"] == 2
        assert counts["decr"] == 2

    async def test_increments_summing_to_zero_restore_value(self, client):
        await client.set("balance", 100)

        for delta in (5, -3, 40, -42, 0):
            await client.incr_by("balance", delta)

        assert await client.get("balance") == "100"

    async def test_delete(self, client):
        await client.set_many({"a": 1, "b": 2, "c": 3})

        removed = await client.delete(["a", "b", "missing"])

        assert removed == 2
        assert await client.keys("*") == ["c"]
        assert client.get_counts()["del"] == 1

    async def test_delete_empty_is_noop(self, client):
        assert await client.delete([]) == 0
        assert client.get_counts()["del"] == 0

    async def test_delete_with_pattern(self, client):
        await client.set_many({"tmp:1": 1, "tmp:2": 2, "keep": 3})

        assert await client.delete_with_pattern("tmp:*") == 2
        assert await client.keys("*") == ["keep"]

    async def test_empty_only_touches_own_prefix(self, client):
        await client.data_connection.set("other:key", "1")
        await client.set_many({"a": 1, "b": 2})

        await client.empty()

        assert await client.keys("*") == []
        assert await client.data_connection.get("other:key") == "1"

    async def test_set_prefix_applies_to_later_operations(self, client):
        await client.set("key", "first")
        client.set_prefix("second:")
        await client.set("key", "second")

        assert client.prefix == "second:"
        assert await client.get("key") == "second"
        client.prefix = "test:"
        assert await client.get("key") == "first"


class TestPrefixIsolation:
    async def test_clients_with_different_prefixes_do_not_interfere(
        self, redis_settings, fake_factory
    ):
        app1 = SimpleRedisClient(redis_settings, connection_factory=fake_factory)
        app2 = SimpleRedisClient(redis_settings, connection_factory=fake_factory)
        await app1.connect(prefix="app1:")
        await app2.connect(prefix="app2:")

        await app1.set("shared", "from-app1")
        assert await app2.keys("*") == []

        await app2.set("shared", "from-app2")
        await app2.empty()

        assert await app1.get("shared") == "from-app1"
        assert app1.get_counts()["set"] == 1
        assert app2.get_counts()["set"] == 1

        await app1.close()
        await app2.close()


class TestCounters:
    async def test_counter_accounting_and_reset(self, client):
        client.reset_counters()

        for i in range(5):
            await client.set(f"k{i}", i)
        await client.get("k0")
        await client.get("k1")

        counts = client.get_counts()
        assert counts["set"] == 5
        assert counts["get"] == 2

        client.reset_counters()
        assert set(client.get_counts().values()) == {0}

    async def test_keys_is_not_counted(self, client):
        await client.keys("*")
        await client.count("*")
        assert set(client.get_counts().values()) == {0}

    async def test_counters_survive_close(self, client):
        await client.set("a", 1)
        await client.close()

        assert client.get_counts()["set"] == 1
        assert client.prefix == "test:"


class TestConnectionGating:
    @pytest.mark.parametrize(
        "call",
        [
            lambda c: c.get("k"),
            lambda c: c.get_many([]),
            lambda c: c.keys("*"),
            lambda c: c.count("*"),
            lambda c: c.set("k", 1),
            lambda c: c.set_many({}),
            lambda c: c.incr("k"),
            lambda c: c.decr_by("k", 2),
            lambda c: c.delete([]),
            lambda c: c.empty(),
            lambda c: c.publish("ch", "msg"),
            lambda c: c.subscribe("ch", print),
            lambda c: c.unsubscribe("ch"),
        ],
    )
    async def test_operations_before_connect_fail(self, redis_settings, call):
        factory_calls = []
        client = SimpleRedisClient(
            redis_settings, connection_factory=lambda url, s: factory_calls.append(url)
        )

        with pytest.raises(NotConnectedError):
            await call(client)

        assert factory_calls == []

    async def test_operations_after_close_do_no_io(self, redis_settings, mock_connection):
        client = SimpleRedisClient(
            redis_settings, connection_factory=lambda url, s: mock_connection
        )
        await client.connect()
        await client.close()

        with pytest.raises(NotConnectedError):
            await client.get("k")
        with pytest.raises(NotConnectedError):
            await client.set("k", "v")

        mock_connection.get.assert_not_called()
        mock_connection.set.assert_not_called()
        assert not client.is_connected()

    async def test_connect_failure(self, redis_settings):
        refused = AsyncMock()
        error = redis.ConnectionError("Connection refused")
        error.__cause__ = ConnectionRefusedError(111, "Connection refused")
        refused.ping.side_effect = error
        client = SimpleRedisClient(redis_settings, connection_factory=lambda url, s: refused)

        with pytest.raises(StoreConnectionError):
            await client.connect("redis://localhost:1")

        assert not client.is_connected()
        assert client.status().state == ConnectionState.FAILED

    async def test_reconnect_closes_previous_connections(self, redis_settings):
        first = AsyncMock()
        second = AsyncMock()
        connections = iter([first, second])
        client = SimpleRedisClient(
            redis_settings, connection_factory=lambda url, s: next(connections)
        )

        await client.connect(prefix="one:")
        await client.connect(prefix="two:")

        first.aclose.assert_awaited_once()
        assert client.data_connection is second
        assert client.prefix == "two:"
        await client.close()


class TestStoreErrors:
    async def test_store_failure_is_wrapped(self, redis_settings, mock_connection):
        mock_connection.get.side_effect = redis.ResponseError(
            "WRONGTYPE Operation against a key holding the wrong kind of value"
        )
        client = SimpleRedisClient(
            redis_settings, connection_factory=lambda url, s: mock_connection
        )
        await client.connect()

        with pytest.raises(StoreError) as exc_info:
            await client.get("list-key")

        assert exc_info.value.operation == "get"
        assert isinstance(exc_info.value.__cause__, redis.ResponseError)
        assert client.get_counts()["get"] == 0
        mock_connection.get.assert_awaited_once_with("list-key")

    async def test_incr_on_non_integer(self, client):
        await client.set("name", "redis")

        with pytest.raises(StoreError):
            await client.incr("name")

        assert client.get_counts()["incr"] == 0

    async def test_publish_failure_is_not_counted(self, redis_settings, mock_connection):
        mock_connection.publish.side_effect = redis.ConnectionError("Connection reset")
        client = SimpleRedisClient(
            redis_settings, connection_factory=lambda url, s: mock_connection
        )
        await client.connect()

        with pytest.raises(StoreError):
            await client.publish("events", "hello")

        assert client.get_counts()["publish"] == 0


class TestObservability:
    async def test_status(self, pubsub_client):
        await pubsub_client.subscribe("news", lambda message: None)
        await pubsub_client.set("a", 1)

        status = pubsub_client.status()

        assert status.connected is True
        assert status.state == ConnectionState.CONNECTED
        assert status.prefix == "test:"
        assert status.pubsub_enabled is True
        assert status.subscribed_channels == ["test:news"]
        assert status.counts["set"] == 1
        assert status.counts["subscribe"] == 1

    async def test_health_check(self, pubsub_client):
        health = await pubsub_client.health_check()

        assert health["status"] == "healthy"
        assert set(health["connections"]) == {"data", "subscription"}

    async def test_health_check_when_disconnected(self, redis_settings, fake_factory):
        client = SimpleRedisClient(redis_settings, connection_factory=fake_factory)

        health = await client.health_check()

        assert health == {"status": "unhealthy", "connections": {}}

    async def test_subscribe_without_pubsub(self, client):
        with pytest.raises(SubscriptionUnavailableError):
            await client.subscribe("news", print)
        with pytest.raises(SubscriptionUnavailableError):
            await client.unsubscribe("news")

    async def test_publish_without_pubsub_connection(self, client):
        assert await client.publish("news", "nobody listens") == 0
        assert client.get_counts()["publish"] == 1
