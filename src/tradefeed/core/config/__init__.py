"""
Configuration models and loading.

This module provides Pydantic models for tradefeed configuration
with multi-layer merging: defaults < config file < env vars.
"""

from .loader import apply_env_overrides, deep_merge, load_config
from .models import (
    CacheConfig,
    FeedConfig,
    GatewayConfig,
    PaginationConfig,
    RetrySettings,
)

__all__ = [
    # Models
    "CacheConfig",
    "FeedConfig",
    "GatewayConfig",
    "PaginationConfig",
    "RetrySettings",
    # Loader functions
    "apply_env_overrides",
    "deep_merge",
    "load_config",
]
