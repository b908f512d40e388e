"""Pytest configuration and shared fixtures."""

import os
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
import pytest_asyncio

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"

from simple_redis.config import RedisSettings  # noqa: E402
from simple_redis.observability import setup_logging  # noqa: E402
from simple_redis.redis_client import SimpleRedisClient  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def configure_logging() -> None:
    """Route structlog output through the text renderer."""
    setup_logging()


@pytest.fixture
def redis_settings() -> RedisSettings:
    """Settings with a fast, short retry policy."""
    return RedisSettings(
        url="redis://localhost:6379",
        prefix="",
        retry_base_delay_seconds=0,
        retry_max_delay_seconds=0,
        retry_max_total_seconds=5,
        retry_max_attempts=5,
        pubsub_poll_timeout_seconds=0.05,
    )


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    """One in-memory Redis server shared by every connection of a test."""
    return fakeredis.FakeServer()


@pytest.fixture
def fake_factory(fake_server: fakeredis.FakeServer) -> Any:
    """Connection factory returning fakeredis clients on the shared server."""

    def factory(url: str, settings: RedisSettings) -> fakeredis.FakeAsyncRedis:
        return fakeredis.FakeAsyncRedis(server=fake_server, decode_responses=True)

    return factory


@pytest_asyncio.fixture
async def client(
    redis_settings: RedisSettings, fake_factory: Any
) -> AsyncGenerator[SimpleRedisClient, None]:
    """Connected client without pub/sub."""
    redis_client = SimpleRedisClient(redis_settings, connection_factory=fake_factory)
    await redis_client.connect(prefix="test:")
    yield redis_client
    if redis_client.is_connected():
        await redis_client.close()


@pytest_asyncio.fixture
async def pubsub_client(
    redis_settings: RedisSettings, fake_factory: Any
) -> AsyncGenerator[SimpleRedisClient, None]:
    """Connected client with a subscription connection."""
    redis_client = SimpleRedisClient(redis_settings, connection_factory=fake_factory)
    await redis_client.connect(prefix="test:", enable_pubsub=True)
    yield redis_client
    if redis_client.is_connected():
        await redis_client.close()


@pytest.fixture
def mock_connection() -> AsyncMock:
    """Store handle whose commands can be scripted per test."""
    pubsub = AsyncMock()
    pubsub.get_message.return_value = None

    connection = AsyncMock()
    connection.pubsub = MagicMock(return_value=pubsub)
    return connection


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (require external services)"
    )
    config.addinivalue_line("markers", "slow: Slow tests")
