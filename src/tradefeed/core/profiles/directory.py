"""
Observable, cache-gated profile directory.

The directory owns the list of known profiles. Refreshes go through the
cache gate on their own (long) TTL, and every successful refresh notifies
subscribers. Entry loading never waits on the directory; consumers that
need names subscribe instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from tradefeed.core.cache_gate import CacheGate
from tradefeed.core.entries.models import Profile
from tradefeed.core.timeouts import call_with_timeout

if TYPE_CHECKING:
    from tradefeed.core.gateway.base import RemoteDataGateway

logger = logging.getLogger(__name__)

PROFILES_CACHE_KEY = "profiles"

ProfileListener = Callable[[list[Profile]], None]


class ProfileDirectory:
    """
    Known profiles, refreshed from the remote store.

    Example:
        >>> directory = ProfileDirectory(gateway, CacheGate(), profiles_ttl_ms=60_000)
        >>> unsubscribe = directory.subscribe(lambda profiles: print(len(profiles)))
        >>> await directory.refresh()
        2
        True
    """

    def __init__(
        self,
        gateway: RemoteDataGateway,
        gate: CacheGate | None = None,
        *,
        profiles_ttl_ms: float = 60_000,
        timeout_seconds: float | None = None,
    ) -> None:
        self.gateway = gateway
        self.gate = gate or CacheGate()
        self.profiles_ttl_ms = profiles_ttl_ms
        self.timeout_seconds = timeout_seconds
        self._profiles: dict[str, Profile] = {}
        self._listeners: list[ProfileListener] = []

    def get(self, profile_id: str) -> Profile | None:
        """Return a profile by id, or None if unknown."""
        return self._profiles.get(profile_id)

    def display_name(self, profile_id: str) -> str | None:
        """Return the display name for a profile id, or None if unknown."""
        profile = self._profiles.get(profile_id)
        return profile.display_name if profile else None

    def all(self) -> list[Profile]:
        """Return every known profile."""
        return list(self._profiles.values())

    def subscribe(self, listener: ProfileListener) -> Callable[[], None]:
        """
        Register a listener called with the profile list after each refresh.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self) -> bool:
        """
        Reload profiles unless the cache gate is closed.

        Returns:
            True if a fetch happened

        Raises:
            GatewayError: If the fetch fails; the gate is reopened
        """
        if not self.gate.allow(PROFILES_CACHE_KEY, self.profiles_ttl_ms):
            logger.debug("Skipping profile refresh: within cache window")
            return False
        await self._fetch()
        return True

    async def force_refresh(self) -> bool:
        """Reload profiles, bypassing the cache gate."""
        self.gate.force_allow(PROFILES_CACHE_KEY)
        await self._fetch()
        return True

    def update(self, profiles: list[Profile]) -> None:
        """Replace the directory contents and notify listeners."""
        self._profiles = {p.id: p for p in profiles}
        for listener in list(self._listeners):
            listener(self.all())

    async def _fetch(self) -> None:
        try:
            profiles = await call_with_timeout(
                self.gateway.list_profiles(),
                self.timeout_seconds,
                operation="list_profiles",
            )
        except Exception:
            self.gate.invalidate(PROFILES_CACHE_KEY)
            raise

        logger.info(f"Loaded {len(profiles)} profiles")
        self.update(profiles)


__all__ = ["PROFILES_CACHE_KEY", "ProfileDirectory", "ProfileListener"]
