"""Operation and connection state models."""

from enum import Enum

from pydantic import Field

from .base import SimpleRedisBaseModel


class OperationName(str, Enum):
    """Counted client operations.

    Batch calls count once per call, not once per key.
    """

    GET = "get"
    SET = "set"
    INCR = "incr"
    DECR = "decr"
    DEL = "del"
    PUBLISH = "publish"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


class ConnectionState(str, Enum):
    """Connection manager lifecycle."""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    FAILED = "FAILED"


class ClientStatus(SimpleRedisBaseModel):
    """Point-in-time snapshot of a client instance."""

    state: ConnectionState
    connected: bool
    prefix: str
    pubsub_enabled: bool = False
    subscribed_channels: list[str] = Field(
        default_factory=list, description="Physical (prefixed) channel names"
    )
    counts: dict[str, int] = Field(default_factory=dict)
