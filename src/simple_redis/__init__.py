"""simple-redis.

A prefixed key-value and pub/sub client for sharing one Redis instance
between several applications:
- redis_client: client, connection manager, subscription router
- models: Pydantic status models
- config: Configuration management
- observability: Structured logging
"""

__version__ = "1.0.6"
