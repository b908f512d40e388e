"""Data models for simple-redis.

All models follow these conventions:
- Field names: lowercase snake_case
- Enums: uppercase SNAKE_CASE members
"""

# Base
from .base import SimpleRedisBaseModel

# Client state
from .status import (
    ClientStatus,
    ConnectionState,
    OperationName,
)

__all__ = [
    "SimpleRedisBaseModel",
    "ClientStatus",
    "ConnectionState",
    "OperationName",
]
