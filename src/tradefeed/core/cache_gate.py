"""
Cache gate for suppressing redundant fetches.

The gate keeps one timestamp per resource key. A fetch for a key may
proceed only when more than its TTL has passed since the last allowed
fetch; otherwise the caller reuses the state it already holds.

Different resources use different TTLs. Entry lists change often and use
a short window, the profile directory changes rarely and uses a long one.

Example:
    >>> gate = CacheGate()
    >>> gate.allow("entries:j1", ttl_ms=500)
    True
    >>> gate.allow("entries:j1", ttl_ms=500)
    False
    >>> gate.force_allow("entries:j1")
    True
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000.0


class CacheGate:
    """
    Per-key TTL guard deciding whether a fetch may proceed.

    The gate has no side effects beyond its own timer map. Time comes from
    an injectable clock returning milliseconds so tests can drive it.

    Attributes:
        clock: Callable returning the current time in milliseconds
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        """
        Initialize an empty gate.

        Args:
            clock: Millisecond clock (default: monotonic wall clock)
        """
        self.clock = clock or monotonic_ms
        self._last_allowed: dict[str, float] = {}

    def allow(self, key: str, ttl_ms: float) -> bool:
        """
        Check whether a fetch for ``key`` may proceed.

        Returns True and resets the key's timer if the key was never
        allowed or more than ``ttl_ms`` has elapsed since it last was.

        Args:
            key: Resource key (e.g., "entries:j1", "profiles")
            ttl_ms: Minimum milliseconds between allowed fetches

        Returns:
            True if the caller should fetch, False if it must skip
        """
        if ttl_ms < 0:
            raise ValueError(f"ttl_ms must be >= 0, got {ttl_ms}")

        now = self.clock()
        last = self._last_allowed.get(key)
        if last is not None and now - last <= ttl_ms:
            logger.debug(f"Cache gate closed for {key} ({now - last:.0f}ms < {ttl_ms}ms)")
            return False

        self._last_allowed[key] = now
        return True

    def force_allow(self, key: str) -> bool:
        """Unconditionally reset the key's timer and allow the fetch."""
        self._last_allowed[key] = self.clock()
        return True

    def invalidate(self, key: str) -> None:
        """Forget a key so its next ``allow`` call passes."""
        self._last_allowed.pop(key, None)

    def clear(self) -> None:
        """Forget every key."""
        self._last_allowed.clear()

    def last_allowed_at(self, key: str) -> float | None:
        """Return the clock value of the last allowed fetch for ``key``."""
        return self._last_allowed.get(key)


__all__ = ["CacheGate", "monotonic_ms"]
