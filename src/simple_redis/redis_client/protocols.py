"""Narrow view of the Redis capabilities the client relies on.

``redis.asyncio.Redis`` (and ``fakeredis.FakeAsyncRedis``) satisfy these
protocols structurally.
"""

from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from typing import Any, Protocol

from simple_redis.config import RedisSettings


class PubSubChannel(Protocol):
    """Subscription side of a connection."""

    async def subscribe(self, *channels: str) -> Any: ...

    async def unsubscribe(self, *channels: str) -> Any: ...

    async def get_message(
        self,
        ignore_subscribe_messages: bool = False,
        timeout: float | None = 0.0,
    ) -> dict[str, Any] | None: ...

    async def aclose(self) -> None: ...


class KeyValueStore(Protocol):
    """Data side of a connection."""

    async def ping(self) -> Any: ...

    async def get(self, name: str) -> str | None: ...

    async def mget(self, keys: Sequence[str]) -> list[str | None]: ...

    async def set(self, name: str, value: str) -> Any: ...

    async def mset(self, mapping: Mapping[str, str]) -> Any: ...

    def scan_iter(self, match: str | None = None) -> AsyncIterator[str]: ...

    async def incrby(self, name: str, amount: int = 1) -> int: ...

    async def decrby(self, name: str, amount: int = 1) -> int: ...

    async def delete(self, *names: str) -> int: ...

    async def publish(self, channel: str, message: str) -> int: ...

    def pubsub(self) -> PubSubChannel: ...

    async def aclose(self) -> None: ...


# Builds an unconnected store handle for a URL
ConnectionFactory = Callable[[str, RedisSettings], KeyValueStore]
