# =============================================================================
# Report Relay - Configuration
# =============================================================================
"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables. Everything has a default
except the sink URL, which must be provided before the relay will start.
"""

from functools import lru_cache

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigMissing


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        webhook_url: Sink endpoint that receives relayed messages (required)
        host: Interface to bind
        port: Listening port
        trust_proxy: Derive client identity from X-Forwarded-For
        trusted_proxy_hops: Number of proxies in front of the relay that append
            to X-Forwarded-For
        environment: Current environment (development/staging/production)
        log_level: Logging verbosity level
        service_name: Name of this service for logging
        max_body_bytes: Largest accepted request body
        forward_timeout_seconds: Hard timeout for the outbound sink call
        global_rate_limit_max_requests: Accepted requests per identity per window
        global_rate_limit_window_seconds: Global limiter window length
        burst_max_requests: Burst counter threshold
        burst_window_seconds: Gap below which the burst counter keeps growing
        burst_idle_ttl_seconds: Idle time after which client state is evicted
        burst_sweep_interval_seconds: Interval of the eviction sweep
    """

    # Sink Configuration
    webhook_url: str
    forward_timeout_seconds: float = 10.0

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 3000
    trust_proxy: bool = False
    trusted_proxy_hops: int = Field(default=1, ge=1)
    max_body_bytes: int = 150 * 1024

    # Rate Limiting
    global_rate_limit_max_requests: int = 6
    global_rate_limit_window_seconds: float = 60.0
    burst_max_requests: int = 10
    burst_window_seconds: float = 5.0
    burst_idle_ttl_seconds: float = 300.0
    burst_sweep_interval_seconds: float = 60.0

    # Application Configuration
    environment: str = "development"
    log_level: str = "INFO"
    service_name: str = "report-relay"

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: str) -> str:
        """Reject blank sink URLs."""
        v = v.strip()
        if not v:
            raise ValueError("webhook_url must not be blank")
        return v


def load_settings() -> Settings:
    """
    Build settings from the environment.

    Returns:
        Settings: Application configuration instance

    Raises:
        ConfigMissing: If WEBHOOK_URL is absent or blank
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigMissing(
            f"Invalid or missing configuration: {', '.join(missing)}. "
            "WEBHOOK_URL is required; other settings must be valid if set."
        ) from e


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to avoid re-reading environment variables
    on every request.

    Returns:
        Settings: Application configuration instance
    """
    return load_settings()
