"""
Feed client: the surface the UI layer talks to.

Wires the gateway, cache gate, entry store, profile directory,
reconciler and mutation controller together from a FeedConfig. The UI
reads snapshots and issues commands; it never touches a collection.

Example:
    >>> config = load_config()
    >>> async with FeedClient.over_http(config, author=me) as feed:
    ...     await feed.load("j1")
    ...     result = await feed.submit_entry("j1", EntryDraft(content="Hello", mental_state="calm"))
    ...     snapshot = feed.get_snapshot("j1")
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from tradefeed.core.analytics import SpaceStats, collective_vibe, space_stats
from tradefeed.core.cache_gate import CacheGate
from tradefeed.core.config.models import FeedConfig
from tradefeed.core.entries.models import EntryDraft, FeedSnapshot, MentalState, Profile
from tradefeed.core.entries.store import EntryStore
from tradefeed.core.gateway.base import RemoteDataGateway
from tradefeed.core.gateway.http import HttpGateway
from tradefeed.core.mutations.controller import OptimisticMutationController
from tradefeed.core.mutations.models import MutationResult
from tradefeed.core.profiles.directory import ProfileDirectory
from tradefeed.core.profiles.reconciler import ProfileReconciler
from tradefeed.core.retry import RetryConfig

logger = logging.getLogger(__name__)


class FeedClient:
    """
    Facade over the synchronization engine.

    Attributes:
        store: Per-space entry store
        directory: Profile directory
        reconciler: Author name reconciler, attached to the directory
        mutations: Optimistic mutation controller
    """

    def __init__(
        self,
        gateway: RemoteDataGateway,
        author: Profile,
        config: FeedConfig | None = None,
        *,
        gate: CacheGate | None = None,
        now: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """
        Build the engine.

        Args:
            gateway: Remote data gateway
            author: Profile of the signed-in user
            config: Engine configuration (default: FeedConfig())
            gate: Cache gate (default: new gate on the monotonic clock)
            now: Wall clock for entry timestamps and load bookkeeping
            sleep: Retry backoff sleep (injectable for tests)
        """
        self.config = config or FeedConfig()
        self.gateway = gateway
        self.author = author
        self.gate = gate or CacheGate()
        timeout = self.config.gateway.timeout_seconds or None

        self.directory = ProfileDirectory(
            gateway,
            self.gate,
            profiles_ttl_ms=self.config.cache.profiles_ttl_ms,
            timeout_seconds=timeout,
        )
        self.store = EntryStore(
            gateway,
            self.gate,
            page_size=self.config.pagination.page_size,
            entries_ttl_ms=self.config.cache.entries_ttl_ms,
            timeout_seconds=timeout,
            resolve_name=self.directory.display_name,
            now=now,
        )
        self.reconciler = ProfileReconciler(self.store)
        self.reconciler.attach(self.directory)

        retry = self.config.retry
        mutation_kwargs = {} if sleep is None else {"sleep": sleep}
        self.mutations = OptimisticMutationController(
            self.store,
            gateway,
            author,
            retry=RetryConfig(
                max_attempts=retry.max_attempts,
                base_delay=retry.base_delay,
                multiplier=retry.multiplier,
                jitter=retry.jitter_ratio > 0,
                jitter_ratio=retry.jitter_ratio,
            ),
            require_mental_state=self.config.require_mental_state,
            timeout_seconds=timeout,
            clock=now,
            **mutation_kwargs,
        )

    @classmethod
    def over_http(cls, config: FeedConfig, author: Profile) -> FeedClient:
        """Build a client talking to the REST service named in ``config``."""
        return cls(HttpGateway(config.gateway), author, config)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_snapshot(self, space_key: str) -> FeedSnapshot:
        """Return the current feed of a space."""
        return self.store.get_snapshot(space_key)

    def stats(self, space_key: str) -> SpaceStats:
        """Win/P&L totals over a space's loaded entries."""
        return space_stats(self.store.get_snapshot(space_key).entries)

    def vibe(self, space_key: str) -> MentalState | None:
        """Collective mental state of a space's newest entries."""
        return collective_vibe(self.store.get_snapshot(space_key).entries)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def load(self, space_key: str) -> bool:
        """Load a space's first page unless it was loaded recently."""
        return await self.store.load(space_key)

    async def load_more(self, space_key: str) -> bool:
        """Load the next page of a space."""
        return await self.store.load_more(space_key)

    async def force_reload(self, space_key: str) -> bool:
        """Reload a space's first page, bypassing the cache gate."""
        return await self.store.force_reload(space_key)

    async def submit_entry(self, space_key: str, draft: EntryDraft) -> MutationResult:
        """Create an entry optimistically; failures come back in the result."""
        return await self.mutations.submit(space_key, draft)

    async def delete_entry(self, space_key: str, entry_id: str) -> MutationResult:
        """Delete an entry optimistically; failures come back in the result."""
        return await self.mutations.delete(space_key, entry_id)

    async def refresh_profiles(self, force: bool = False) -> bool:
        """Refresh the profile directory; reconciliation runs on success."""
        if force:
            return await self.directory.force_refresh()
        return await self.directory.refresh()

    def leave_space(self, space_key: str) -> None:
        """Discard all state held for a space."""
        self.store.discard(space_key)

    async def aclose(self) -> None:
        """Detach observers and close the gateway if it holds resources."""
        self.reconciler.detach()
        close = getattr(self.gateway, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> FeedClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["FeedClient"]
