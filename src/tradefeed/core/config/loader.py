"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < config file < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable

from .env import load_env_files
from .models import FeedConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "tradefeed.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"cache": {"entries_ttl_ms": 1}}, {"cache": {"profiles_ttl_ms": 2}})
        {'cache': {'entries_ttl_ms': 1, 'profiles_ttl_ms': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to parse config at {path}: {e}")
        return None


# (env var, section, key, parser)
_ENV_OVERRIDES: list[tuple[str, str, str, Callable[[str], Any]]] = [
    ("TRADEFEED_BASE_URL", "gateway", "base_url", str),
    ("TRADEFEED_TIMEOUT", "gateway", "timeout_seconds", float),
    ("TRADEFEED_PAGE_SIZE", "pagination", "page_size", int),
    ("TRADEFEED_ENTRIES_TTL_MS", "cache", "entries_ttl_ms", int),
    ("TRADEFEED_PROFILES_TTL_MS", "cache", "profiles_ttl_ms", int),
    ("TRADEFEED_RETRY_ATTEMPTS", "retry", "max_attempts", int),
]


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override the config file.

    Supported env vars:
        TRADEFEED_BASE_URL - overrides gateway.base_url
        TRADEFEED_TIMEOUT - overrides gateway.timeout_seconds
        TRADEFEED_PAGE_SIZE - overrides pagination.page_size
        TRADEFEED_ENTRIES_TTL_MS - overrides cache.entries_ttl_ms
        TRADEFEED_PROFILES_TTL_MS - overrides cache.profiles_ttl_ms
        TRADEFEED_RETRY_ATTEMPTS - overrides retry.max_attempts

    Invalid values are logged and ignored.
    """
    result = config_dict.copy()

    for env_var, section, key, parse in _ENV_OVERRIDES:
        raw = os.environ.get(env_var)
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError:
            logger.warning(f"Invalid {env_var} value '{raw}', ignoring")
            continue
        result[section] = {**result.get(section, {}), key: value}

    return result


def load_config(
    config_path: Path | None = None,
    *,
    load_dotenv: bool = True,
) -> FeedConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (TRADEFEED_*), including ones read from .env
        2. Config file (./tradefeed.json unless ``config_path`` is given)
        3. Model defaults

    Args:
        config_path: Explicit config file path
        load_dotenv: Read .env files from the config file's directory first

    Returns:
        Validated FeedConfig instance

    Raises:
        pydantic.ValidationError: If the merged config fails validation
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if load_dotenv:
        load_env_files(project_dir=config_path.parent)

    merged: dict[str, Any] = {}
    if file_config := load_json_file(config_path):
        merged = deep_merge(merged, file_config)

    merged = apply_env_overrides(merged)
    return FeedConfig(**merged)
