"""Prefixed key-value and pub/sub client.

Every key and channel is namespaced with the active prefix so several
applications can share one Redis instance. Each successful operation is
counted by kind; batch calls count once per call.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

import redis.asyncio as redis

from simple_redis.config import RedisSettings, get_settings
from simple_redis.models import ClientStatus, OperationName
from simple_redis.observability import get_logger, log_store_call_end

from .connection import ConnectionManager
from .counters import OperationCounter
from .exceptions import NotConnectedError, StoreError
from .prefix import PrefixCodec
from .protocols import ConnectionFactory, KeyValueStore
from .subscriptions import Listener, SubscriptionRouter

logger = get_logger(__name__)

T = TypeVar("T")

Value = str | int | float


class SimpleRedisClient:
    """Async Redis client with key/channel namespacing.

    Instances are independent: each one owns its connections, counters and
    subscriptions.

    Usage:
        client = SimpleRedisClient()
        await client.connect("redis://localhost:6379", prefix="app1:")
        await client.set("visits", 0)
        await client.incr("visits")
    """

    def __init__(
        self,
        settings: RedisSettings | None = None,
        connection_factory: ConnectionFactory | None = None,
    ):
        """Initialize an unconnected client.

        Args:
            settings: Redis settings (defaults to the cached application settings)
            connection_factory: Builds store handles; defaults to redis-py
        """
        self._settings = settings or get_settings().redis
        self._codec = PrefixCodec(self._settings.prefix)
        self._counter = OperationCounter()
        self._connections = ConnectionManager(self._settings, connection_factory)
        self._router = SubscriptionRouter(
            self._codec,
            self._counter,
            poll_timeout=self._settings.pubsub_poll_timeout_seconds,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def prefix(self) -> str:
        return self._codec.prefix

    @prefix.setter
    def prefix(self, value: str) -> None:
        self._codec.prefix = value

    def set_prefix(self, prefix: str) -> None:
        """Change the prefix used by subsequent operations."""
        self._codec.prefix = prefix

    def is_connected(self) -> bool:
        return self._connections.is_connected()

    @property
    def data_connection(self) -> KeyValueStore:
        """Raw data connection, for commands this client does not wrap."""
        return self._connections.data_connection

    async def connect(
        self,
        url: str | None = None,
        prefix: str | None = None,
        enable_pubsub: bool | None = None,
    ) -> None:
        """Connect to Redis.

        Args:
            url: Redis connection URL (defaults to settings.url)
            prefix: Active prefix (defaults to settings.prefix)
            enable_pubsub: Open a subscription connection (defaults to
                settings.pubsub_enabled)

        Raises:
            StoreConnectionError: Redis could not be reached
        """
        if self.is_connected():
            logger.info("Reconnecting, closing existing connections")
            await self.close()

        url = url or self._settings.url
        enable_pubsub = (
            self._settings.pubsub_enabled if enable_pubsub is None else enable_pubsub
        )

        await self._connections.connect(url, enable_pubsub=enable_pubsub)
        self._codec.prefix = self._settings.prefix if prefix is None else prefix

        subscription = self._connections.subscription_connection
        if subscription is not None:
            self._router.attach(subscription)

    async def close(self) -> None:
        """Close all connections. Counters and prefix are kept."""
        try:
            await self._router.close()
        finally:
            await self._connections.close()

    # =========================================================================
    # Counters
    # =========================================================================

    def get_counts(self) -> dict[str, int]:
        """Count of successful operations by kind."""
        return self._counter.snapshot()

    def reset_counters(self) -> None:
        self._counter.reset()

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def get(self, key: str) -> str | None:
        """Get a value, or None when the key does not exist."""
        connection = self.data_connection
        value = await self._call("get", connection.get(self._codec.encode(key)))
        self._counter.increment(OperationName.GET)
        return value

    async def get_many(self, keys: Sequence[str]) -> dict[str, str | None]:
        """Get several values with a single MGET.

        Args:
            keys: Logical keys

        Returns:
            Mapping of each requested key to its value or None
        """
        connection = self.data_connection
        if not keys:
            return {}

        values = await self._call("mget", connection.mget(self._codec.encode_many(keys)))
        self._counter.increment(OperationName.GET)
        return dict(zip(keys, values))

    async def keys(self, pattern: str) -> list[str]:
        """List logical keys matching a glob pattern (``*``, ``?``)."""
        connection = self.data_connection
        match = self._codec.encode(pattern)

        async def scan() -> list[str]:
            # SCAN may return a key more than once
            found = [key async for key in connection.scan_iter(match=match)]
            return list(dict.fromkeys(found))

        physical = await self._call("scan", scan())
        return [self._codec.decode(key) for key in physical]

    async def count(self, pattern: str) -> int:
        """Number of keys matching a pattern."""
        return len(await self.keys(pattern))

    async def get_many_by_pattern(self, pattern: str) -> dict[str, str | None]:
        """Get every key matching a pattern with its value."""
        return await self.get_many(await self.keys(pattern))

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def set(self, key: str, value: Value) -> None:
        """Store ``str(value)`` under ``key``."""
        connection = self.data_connection
        await self._call("set", connection.set(self._codec.encode(key), str(value)))
        self._counter.increment(OperationName.SET)

    async def set_many(self, values: Mapping[str, Value]) -> None:
        """Store several values with a single MSET."""
        connection = self.data_connection
        if not values:
            return

        mapping = {self._codec.encode(key): str(value) for key, value in values.items()}
        await self._call("mset", connection.mset(mapping))
        self._counter.increment(OperationName.SET)

    async def incr_by(self, key: str, amount: int) -> int:
        """Atomically add ``amount`` (may be negative). Returns the new value."""
        connection = self.data_connection
        value = await self._call("incrby", connection.incrby(self._codec.encode(key), amount))
        self._counter.increment(OperationName.INCR)
        return value

    async def decr_by(self, key: str, amount: int) -> int:
        """Atomically subtract ``amount`` (may be negative). Returns the new value."""
        connection = self.data_connection
        value = await self._call("decrby", connection.decrby(self._codec.encode(key), amount))
        self._counter.increment(OperationName.DECR)
        return value

    async def incr(self, key: str) -> int:
        return await self.incr_by(key, 1)

    async def decr(self, key: str) -> int:
        return await self.decr_by(key, 1)

    async def delete(self, keys: Iterable[str]) -> int:
        """Delete keys with a single DEL.

        Returns:
            Number of keys removed
        """
        connection = self.data_connection
        physical = self._codec.encode_many(keys)
        if not physical:
            return 0

        removed = await self._call("del", connection.delete(*physical))
        self._counter.increment(OperationName.DEL)
        return removed

    async def delete_with_pattern(self, pattern: str) -> int:
        """Delete every key matching a pattern."""
        return await self.delete(await self.keys(pattern))

    async def empty(self) -> int:
        """Delete every key under the active prefix."""
        return await self.delete_with_pattern("*")

    # =========================================================================
    # PubSub Operations
    # =========================================================================

    async def publish(self, channel: str, message: Value) -> int:
        """Publish over the data connection.

        Local listeners only receive the message through Redis' fan-out.

        Returns:
            Number of subscribers that received the message
        """
        connection = self.data_connection
        receivers = await self._call(
            "publish", connection.publish(self._codec.encode(channel), str(message))
        )
        self._counter.increment(OperationName.PUBLISH)
        return receivers

    async def subscribe(self, channel: str, listener: Listener) -> None:
        """Call ``listener(message)`` for every message on ``channel``.

        Raises:
            NotConnectedError: Client is not connected
            SubscriptionUnavailableError: Connected without pub/sub
            StoreError: Redis rejected the SUBSCRIBE
        """
        self._require_connected()
        await self._router.subscribe(channel, listener)

    async def unsubscribe(self, channel: str) -> None:
        """Remove every listener of ``channel``."""
        self._require_connected()
        await self._router.unsubscribe(channel)

    # =========================================================================
    # Health Check
    # =========================================================================

    async def health_check(self) -> dict[str, Any]:
        """Ping every live connection.

        Returns:
            Health status dict
        """
        results: dict[str, dict[str, str]] = {}
        if self.is_connected():
            for role, connection in self._connections.live_connections().items():
                try:
                    await connection.ping()
                    results[role] = {"status": "healthy"}
                except redis.RedisError as e:
                    results[role] = {"status": "unhealthy", "error": str(e)}

        all_healthy = bool(results) and all(r["status"] == "healthy" for r in results.values())
        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "connections": results,
        }

    def status(self) -> ClientStatus:
        """Snapshot of connection state, prefix, subscriptions and counts."""
        return ClientStatus(
            state=self._connections.state,
            connected=self.is_connected(),
            prefix=self.prefix,
            pubsub_enabled=self._router.available,
            subscribed_channels=self._router.channels,
            counts=self.get_counts(),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_connected(self) -> None:
        if not self.is_connected():
            raise NotConnectedError("Redis client not connected. Call connect() first.")

    async def _call(self, operation: str, command: Awaitable[T]) -> T:
        """Await a Redis command, translating redis-py errors to StoreError."""
        start = time.perf_counter()
        try:
            result = await command
        except redis.RedisError as e:
            log_store_call_end(
                logger,
                operation,
                self.prefix,
                success=False,
                duration_ms=(time.perf_counter() - start) * 1000,
                error=str(e),
            )
            raise StoreError(operation, str(e)) from e

        log_store_call_end(
            logger,
            operation,
            self.prefix,
            success=True,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        return result
