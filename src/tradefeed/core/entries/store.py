"""
Per-space entry store with keyset pagination.

The EntryStore owns one SpaceFeedState per space key and is the only code
that mutates those states. Everything else (the mutation controller, the
profile reconciler, the UI) reads snapshots and issues commands.

Concurrency model: a single asyncio event loop. Each operation awaits at
most one gateway call and then applies its result in a synchronous block
against the state as it is *at that moment*, never against a copy taken
before the await. Two sequence checks keep interleaved tasks honest:

- A first-page load that finishes after a newer load has already been
  applied is dropped instead of rolling the feed back.
- A next-page fetch whose space was reloaded while it was in flight is
  dropped, since its cursor belongs to the previous window.

Entries prepended locally while a load is in flight survive that load,
so a confirmation racing a refresh is never lost.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from tradefeed.core.cache_gate import CacheGate
from tradefeed.core.entries.models import Entry, FeedSnapshot, Page, SpaceFeedState
from tradefeed.core.entries.ordering import merge_entries
from tradefeed.core.timeouts import call_with_timeout

if TYPE_CHECKING:
    from tradefeed.core.gateway.base import RemoteDataGateway

logger = logging.getLogger(__name__)

ENTRIES_CACHE_PREFIX = "entries:"


class EntryStore:
    """
    Ordered, deduplicated entry collections for every loaded space.

    Example:
        >>> store = EntryStore(gateway, CacheGate(), page_size=20, entries_ttl_ms=500)
        >>> await store.load("j1")
        True
        >>> await store.load_more("j1")
        True
        >>> snapshot = store.get_snapshot("j1")
        >>> len(snapshot.entries), snapshot.has_more
        (35, False)
    """

    def __init__(
        self,
        gateway: RemoteDataGateway,
        gate: CacheGate | None = None,
        *,
        page_size: int = 50,
        entries_ttl_ms: float = 10_000,
        timeout_seconds: float | None = None,
        resolve_name: Callable[[str], str | None] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            gateway: Remote data gateway used for page fetches
            gate: Cache gate shared with other components (default: new gate)
            page_size: Entries requested per page
            entries_ttl_ms: Cache gate window for first-page loads
            timeout_seconds: Per-call timeout for page fetches
            resolve_name: Lookup from author id to display name, used to
                fill placeholders on entries as they arrive
            now: Wall clock for ``last_loaded_at``
        """
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")

        self.gateway = gateway
        self.gate = gate or CacheGate()
        self.page_size = page_size
        self.entries_ttl_ms = entries_ttl_ms
        self.timeout_seconds = timeout_seconds
        self.resolve_name = resolve_name
        self.now = now or (lambda: datetime.now(timezone.utc))
        self._states: dict[str, SpaceFeedState] = {}
        self._seq = itertools.count(1)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @staticmethod
    def cache_key(space_key: str) -> str:
        """Cache gate key for a space's entry list."""
        return f"{ENTRIES_CACHE_PREFIX}{space_key}"

    def state(self, space_key: str) -> SpaceFeedState:
        """Return the state for a space, creating it on first access."""
        state = self._states.get(space_key)
        if state is None:
            state = SpaceFeedState(space_key=space_key)
            self._states[space_key] = state
        return state

    def has_space(self, space_key: str) -> bool:
        """True if the space has state (it was touched and not discarded)."""
        return space_key in self._states

    def spaces(self) -> list[str]:
        """Keys of every space with state."""
        return list(self._states)

    def states(self) -> dict[str, SpaceFeedState]:
        """Every space's state, keyed by space. The dict is a copy; the states are live."""
        return dict(self._states)

    def discard(self, space_key: str) -> None:
        """
        Drop all state for a space (the user left it).

        Responses still in flight for the space are ignored when they land.
        """
        if self._states.pop(space_key, None) is not None:
            self.gate.invalidate(self.cache_key(space_key))
            logger.debug(f"Discarded feed state for {space_key}")

    def get_snapshot(self, space_key: str) -> FeedSnapshot:
        """Return an immutable view of a space's feed."""
        state = self.state(space_key)
        return FeedSnapshot(
            space_key=space_key,
            entries=tuple(state.entries),
            has_more=state.has_more,
            is_loading_more=state.is_loading_more,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, space_key: str) -> bool:
        """
        Load the first page of a space unless the cache gate is closed.

        Returns:
            True if a fetch happened, False if it was skipped

        Raises:
            GatewayError: If the fetch fails; the gate is reopened so the
                caller can retry immediately
        """
        if not self.gate.allow(self.cache_key(space_key), self.entries_ttl_ms):
            logger.debug(f"Skipping load of {space_key}: within cache window")
            return False
        await self._load_first_page(space_key)
        return True

    async def force_reload(self, space_key: str) -> bool:
        """Load the first page of a space, bypassing the cache gate."""
        self.gate.force_allow(self.cache_key(space_key))
        await self._load_first_page(space_key)
        return True

    async def _load_first_page(self, space_key: str) -> None:
        state = self.state(space_key)
        started = next(self._seq)

        try:
            page = await call_with_timeout(
                self.gateway.list_entries(space_key, self.page_size),
                self.timeout_seconds,
                operation="list_entries",
            )
        except Exception:
            self.gate.invalidate(self.cache_key(space_key))
            raise

        if self._states.get(space_key) is not state:
            logger.debug(f"Dropping first page for {space_key}: space was discarded")
            return
        if started < state.epoch:
            logger.debug(f"Dropping stale first page for {space_key}: newer load applied")
            return

        fetched = [self._resolve(e) for e in page.entries]
        retained = [
            e
            for e in state.entries
            if e.is_tentative or state.local_inserts.get(e.id, 0) > started
        ]
        state.entries = merge_entries(retained, fetched, exclude=state.tombstones)
        state.local_inserts = {
            entry_id: seq for entry_id, seq in state.local_inserts.items() if seq > started
        }
        state.epoch = started
        state.cursor = page.end_cursor
        state.has_more = self._has_more(page)
        state.last_loaded_at = self.now()
        logger.info(
            f"Loaded {len(fetched)} entries for {space_key} "
            f"({len(retained)} local kept, has_more={state.has_more})"
        )

    async def load_more(self, space_key: str) -> bool:
        """
        Fetch and merge the page after the stored cursor.

        No-op while a fetch for the same space is in flight, when there is
        nothing more to load, or before the first page has been loaded.

        Returns:
            True if a page was merged

        Raises:
            GatewayError: If the fetch fails; cursor and has_more are left
                untouched so a retry neither skips nor duplicates entries
        """
        state = self.state(space_key)
        if state.is_loading_more or not state.has_more or state.cursor is None:
            return False

        cursor = state.cursor
        epoch = state.epoch
        state.is_loading_more = True
        try:
            page = await call_with_timeout(
                self.gateway.list_entries(space_key, self.page_size, cursor),
                self.timeout_seconds,
                operation="list_entries",
            )
        finally:
            state.is_loading_more = False

        if self._states.get(space_key) is not state:
            logger.debug(f"Dropping next page for {space_key}: space was discarded")
            return False
        if state.epoch != epoch or state.cursor != cursor:
            logger.debug(f"Dropping next page for {space_key}: feed reloaded meanwhile")
            return False

        self.merge_page(space_key, page)
        if page.end_cursor is not None:
            state.cursor = page.end_cursor
        state.has_more = self._has_more(page)
        logger.info(
            f"Loaded {len(page)} more entries for {space_key} (has_more={state.has_more})"
        )
        return True

    def _has_more(self, page: Page) -> bool:
        return len(page) == self.page_size and not page.is_last_page

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def merge_page(self, space_key: str, page: Page) -> list[Entry]:
        """
        Union a page into a space's entries by id.

        Fetched entries win on collision; the result is re-sorted by
        ``(created_at desc, id desc)``. Tombstoned ids are dropped.

        Returns:
            The space's entries after the merge
        """
        state = self.state(space_key)
        fetched = [self._resolve(e) for e in page.entries]
        state.entries = merge_entries(state.entries, fetched, exclude=state.tombstones)
        logger.debug(f"Merged {len(fetched)} entries into {space_key} ({len(state.entries)} total)")
        return state.entries

    def prepend(self, space_key: str, entry: Entry) -> bool:
        """
        Insert an entry at the head of a space's feed.

        An existing entry with the same id is replaced, keeping ids unique.

        Returns:
            False if the id is tombstoned and the entry was not inserted
        """
        state = self.state(space_key)
        if entry.id in state.tombstones:
            logger.debug(f"Not prepending tombstoned entry {entry.id} to {space_key}")
            return False

        state.entries = [self._resolve(entry)] + [e for e in state.entries if e.id != entry.id]
        state.local_inserts[entry.id] = next(self._seq)
        return True

    def remove_entry(self, space_key: str, entry_id: str) -> Entry | None:
        """Remove an entry by id and return it, or None if absent."""
        state = self._states.get(space_key)
        if state is None:
            return None
        idx = state.index_of(entry_id)
        state.local_inserts.pop(entry_id, None)
        if idx is None:
            return None
        return state.entries.pop(idx)

    def replace_entry(self, space_key: str, entry: Entry) -> bool:
        """Replace an entry in place, keeping its position. Returns False if absent."""
        state = self._states.get(space_key)
        if state is None:
            return False
        idx = state.index_of(entry.id)
        if idx is None:
            return False
        state.entries[idx] = entry
        return True

    def tombstone(self, space_key: str, entry_id: str) -> Entry | None:
        """
        Remove an entry and stop later loads from bringing it back.

        Returns:
            The removed entry, if it was loaded
        """
        state = self.state(space_key)
        state.tombstones.add(entry_id)
        return self.remove_entry(space_key, entry_id)

    def restore(self, space_key: str, entry_id: str, entry: Entry | None = None) -> None:
        """Undo a tombstone and, if given, put the entry back in feed order."""
        state = self._states.get(space_key)
        if state is None:
            return
        state.tombstones.discard(entry_id)
        if entry is not None:
            state.entries = merge_entries(state.entries, [entry], exclude=state.tombstones)

    def _resolve(self, entry: Entry) -> Entry:
        if entry.is_author_resolved or self.resolve_name is None:
            return entry
        name = self.resolve_name(entry.author_id)
        if not name:
            return entry
        return entry.model_copy(update={"author_display_name": name})


__all__ = ["ENTRIES_CACHE_PREFIX", "EntryStore"]
