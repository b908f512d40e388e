"""Configuration management with Pydantic Settings.

Environment variables are loaded from:
1. Environment variables (highest priority)
2. .env file (development)
3. Defaults (lowest priority)
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Logging format."""

    JSON = "json"
    TEXT = "text"


class RedisSettings(BaseSettings):
    """Redis connection and namespacing configuration."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    url: str = Field(default="redis://localhost:6379", description="Redis connection URL")
    prefix: str = Field(default="", description="Namespace prepended to keys and channels")
    pubsub_enabled: bool = Field(
        default=False,
        description="Open a dedicated subscription connection on connect",
    )
    socket_connect_timeout: float = Field(
        default=5.0,
        description="Socket connect timeout in seconds",
    )

    # Connect-time retry policy
    retry_base_delay_seconds: float = Field(
        default=0.1,
        description="Base delay for exponential backoff",
    )
    retry_max_delay_seconds: float = Field(
        default=3.0,
        description="Maximum delay between two connect attempts",
    )
    retry_max_total_seconds: float = Field(
        default=3600.0,
        description="Give up once this much time was spent retrying",
    )
    retry_max_attempts: int = Field(
        default=20000,
        description="Give up after this many connect attempts",
    )

    pubsub_poll_timeout_seconds: float = Field(
        default=1.0,
        description="Timeout of a single poll on the subscription connection",
    )

    @field_validator("retry_max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        """Ensure at least one attempt is made."""
        return max(1, v)


class Settings(BaseSettings):
    """Main library settings.

    All settings can be overridden via environment variables.
    For nested settings, use the appropriate prefix (e.g., REDIS_URL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="simple-redis", description="Application name")
    app_version: str = Field(default="1.0.6", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        alias="ENV",
        description="Deployment environment",
    )

    # Logging configuration
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Logging format")

    # Nested settings
    redis: RedisSettings = Field(default_factory=RedisSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment variables.
    """
    return Settings()
