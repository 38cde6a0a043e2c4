"""
Configuration data models for tradefeed.

These models define the structure of ``tradefeed.json`` and the
``TRADEFEED_*`` environment overrides, with validation and type safety
via Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CacheConfig(BaseModel):
    """
    Time-to-live windows for the cache gate.

    Entry lists change often and use a short window; the profile
    directory changes rarely and uses a long one.
    """

    entries_ttl_ms: int = Field(
        default=10_000,
        ge=0,
        description="Minimum milliseconds between non-forced entry list loads per space",
    )
    profiles_ttl_ms: int = Field(
        default=60_000,
        ge=0,
        description="Minimum milliseconds between non-forced profile directory refreshes",
    )


class PaginationConfig(BaseModel):
    """Keyset pagination settings."""

    page_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Entries requested per page",
    )


class RetrySettings(BaseModel):
    """
    Retry policy for mutations.

    Only transient network errors are retried; authentication and
    validation errors always fail immediately.
    """

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts per mutation, including the first",
    )
    base_delay: float = Field(
        default=0.5,
        ge=0.0,
        description="Seconds before the first retry",
    )
    multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Backoff multiplier applied per retry",
    )
    jitter_ratio: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Random variance applied to each delay (0.0-1.0)",
    )


class GatewayConfig(BaseModel):
    """
    Remote data gateway connection settings.

    The auth token is never stored in config; only the name of the
    environment variable holding it.
    """

    base_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the feed REST service",
    )
    timeout_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Per-call timeout; 0 disables it",
    )
    token_env_var: Optional[str] = Field(
        default="TRADEFEED_TOKEN",
        description="Environment variable holding the bearer token",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so endpoint paths join cleanly."""
        return v.rstrip("/")


class FeedConfig(BaseModel):
    """
    Main tradefeed configuration model.

    Example:
        >>> config = FeedConfig(pagination=PaginationConfig(page_size=20))
        >>> config.cache.entries_ttl_ms
        10000
    """

    model_config = ConfigDict(extra="ignore")

    cache: CacheConfig = Field(default_factory=CacheConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    require_mental_state: bool = Field(
        default=True,
        description="Reject new entries that do not carry a mental state",
    )
