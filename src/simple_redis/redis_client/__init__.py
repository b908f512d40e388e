"""Prefixed Redis client with multiplexed pub/sub.

Keys and channels are namespaced with a caller-supplied prefix:
- data commands run on one connection
- subscriptions run on a second, dedicated connection
"""

from .client import SimpleRedisClient
from .connection import ConnectionManager, create_connection
from .counters import OperationCounter
from .exceptions import (
    NotConnectedError,
    SimpleRedisError,
    StoreConnectionError,
    StoreError,
    SubscriptionUnavailableError,
)
from .prefix import PrefixCodec
from .subscriptions import Listener, SubscriptionRouter

__all__ = [
    "SimpleRedisClient",
    "ConnectionManager",
    "create_connection",
    "OperationCounter",
    "PrefixCodec",
    "SubscriptionRouter",
    "Listener",
    # Errors
    "SimpleRedisError",
    "NotConnectedError",
    "StoreConnectionError",
    "StoreError",
    "SubscriptionUnavailableError",
]
