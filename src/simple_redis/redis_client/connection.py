"""Connection lifecycle for the data and subscription connections."""

from __future__ import annotations

import asyncio
import time

import redis.asyncio as redis
from redis.backoff import ExponentialBackoff

from simple_redis.config import RedisSettings
from simple_redis.models import ConnectionState
from simple_redis.observability import get_logger, log_connect_attempt

from .exceptions import NotConnectedError, StoreConnectionError
from .protocols import ConnectionFactory, KeyValueStore

logger = get_logger(__name__)

DATA_ROLE = "data"
SUBSCRIPTION_ROLE = "subscription"


def create_connection(url: str, settings: RedisSettings) -> redis.Redis:
    """Build a redis-py client for ``url``.

    Nothing is sent to the server until the first command.
    """
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=settings.socket_connect_timeout,
    )


def _is_refused(exc: BaseException) -> bool:
    """Check the exception chain for a refused TCP connection."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, ConnectionRefusedError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


class ConnectionManager:
    """Owns one data connection and an optional subscription connection.

    The two connections are independent: a blocked subscription read never
    delays a data command.
    """

    def __init__(
        self,
        settings: RedisSettings,
        connection_factory: ConnectionFactory | None = None,
    ):
        self._settings = settings
        self._factory = connection_factory or create_connection
        self._data: KeyValueStore | None = None
        self._subscription: KeyValueStore | None = None
        self.state = ConnectionState.DISCONNECTED

    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def data_connection(self) -> KeyValueStore:
        """Live data connection. Raises NotConnectedError otherwise."""
        if not self.is_connected() or self._data is None:
            raise NotConnectedError("Redis client not connected. Call connect() first.")
        return self._data

    @property
    def subscription_connection(self) -> KeyValueStore | None:
        """Live subscription connection, or None when pub/sub is disabled."""
        if not self.is_connected():
            return None
        return self._subscription

    def live_connections(self) -> dict[str, KeyValueStore]:
        """Map of role name to live connection."""
        connections: dict[str, KeyValueStore] = {}
        if self._data is not None:
            connections[DATA_ROLE] = self._data
        if self._subscription is not None:
            connections[SUBSCRIPTION_ROLE] = self._subscription
        return connections

    async def connect(self, url: str, enable_pubsub: bool = False) -> None:
        """Open the data connection and, if requested, the subscription one.

        Args:
            url: Redis connection URL
            enable_pubsub: Also open a dedicated subscription connection

        Raises:
            StoreConnectionError: A ready connection could not be established
        """
        self.state = ConnectionState.CONNECTING

        try:
            data = await self._open(url, DATA_ROLE)
        except StoreConnectionError:
            self.state = ConnectionState.FAILED
            raise

        subscription = None
        if enable_pubsub:
            try:
                subscription = await self._open(url, SUBSCRIPTION_ROLE)
            except StoreConnectionError:
                self.state = ConnectionState.FAILED
                await data.aclose()
                raise

        self._data = data
        self._subscription = subscription
        self.state = ConnectionState.CONNECTED

        logger.info(
            "Connected to Redis",
            url=url,
            pubsub_enabled=subscription is not None,
        )

    async def close(self) -> None:
        """Close every live connection.

        The manager is disconnected afterwards even when a close fails; the
        first failure is raised as StoreConnectionError.
        """
        connections = self.live_connections()
        self._data = None
        self._subscription = None
        self.state = ConnectionState.DISCONNECTED

        failure: tuple[str, Exception] | None = None
        for role, connection in connections.items():
            try:
                await connection.aclose()
            except (redis.RedisError, OSError) as e:
                logger.error("Failed to close Redis connection", connection_role=role, error=str(e))
                if failure is None:
                    failure = (role, e)

        if failure is not None:
            role, error = failure
            raise StoreConnectionError(f"Failed to close {role} connection: {error}") from error

        logger.info("Redis connections closed", closed=list(connections))

    async def _open(self, url: str, role: str) -> KeyValueStore:
        """Create a connection and wait until it answers PING.

        Retries with capped exponential backoff until the attempt or
        elapsed-time budget runs out. A refused connection is not retried.
        """
        settings = self._settings
        backoff = ExponentialBackoff(
            cap=settings.retry_max_delay_seconds,
            base=settings.retry_base_delay_seconds,
        )
        started = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            connection = self._factory(url, settings)
            try:
                await connection.ping()
                return connection
            except (redis.ConnectionError, redis.TimeoutError) as e:
                await connection.aclose()
                if isinstance(e, redis.AuthenticationError) or _is_refused(e):
                    logger.error("Redis refused the connection", connection_role=role, error=str(e))
                    raise StoreConnectionError(f"Redis server refused the connection: {e}") from e

                if attempt >= settings.retry_max_attempts:
                    raise StoreConnectionError(
                        f"Could not connect to Redis after {attempt} attempts: {e}"
                    ) from e

                delay = backoff.compute(attempt - 1)
                if time.monotonic() - started + delay > settings.retry_max_total_seconds:
                    raise StoreConnectionError(f"Retry time exhausted: {e}") from e

                log_connect_attempt(logger, role, attempt, delay, str(e))
                await asyncio.sleep(delay)
            except redis.RedisError as e:
                await connection.aclose()
                raise StoreConnectionError(f"Redis rejected the {role} connection: {e}") from e
