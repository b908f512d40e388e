"""Client error taxonomy."""


class SimpleRedisError(Exception):
    """Base exception for simple-redis errors."""

    pass


class NotConnectedError(SimpleRedisError):
    """Raised when an operation runs before connect() or after close()."""

    pass


class StoreConnectionError(SimpleRedisError):
    """Raised when a connection cannot be established or closed."""

    pass


class SubscriptionUnavailableError(SimpleRedisError):
    """Raised on pub/sub calls when the client was connected without pub/sub."""

    pass


class StoreError(SimpleRedisError):
    """Raised when Redis rejects or fails a data or pub/sub command.

    The original redis-py exception is available as ``__cause__``.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
