"""
In-memory remote data gateway.

A deterministic, in-process implementation of RemoteDataGateway. Used by
the test suite and for local development without a backend. Supports
keyset pagination, call counting, injected failures and an optional
gate that holds calls open until the test releases them.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import Counter, defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from tradefeed.core.entries.models import Cursor, Entry, Page, Profile, TradeFields
from tradefeed.core.entries.ordering import sort_entries
from tradefeed.core.gateway.exceptions import ValidationError

logger = logging.getLogger(__name__)


class InMemoryGateway:
    """
    RemoteDataGateway backed by plain dictionaries.

    Attributes:
        calls: Number of calls per operation name
        profiles: Profiles returned by ``list_profiles``

    Example:
        >>> gateway = InMemoryGateway()
        >>> gateway.seed("j1", count=35)
        >>> page = await gateway.list_entries("j1", page_size=20)
        >>> len(page), page.is_last_page
        (20, False)
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        latency: float = 0.0,
    ) -> None:
        """
        Initialize an empty gateway.

        Args:
            clock: Source of server timestamps for created entries
            latency: Seconds each call sleeps before answering
        """
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.latency = latency
        self.calls: Counter[str] = Counter()
        self.profiles: list[Profile] = []
        self._entries: dict[str, list[Entry]] = defaultdict(list)
        self._ids = itertools.count(1)
        self._failures: dict[str, list[BaseException]] = defaultdict(list)
        self._holds: dict[str, asyncio.Event] = {}

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    def seed(
        self,
        space_key: str,
        count: int,
        *,
        start: datetime | None = None,
        author_id: str = "u1",
        author_display_name: str | None = None,
    ) -> list[Entry]:
        """Insert ``count`` entries one minute apart, newest last."""
        start = start or datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc)
        created = []
        for i in range(count):
            entry = Entry(
                id=f"e{next(self._ids)}",
                space_key=space_key,
                author_id=author_id,
                author_display_name=author_display_name,
                created_at=start + timedelta(minutes=i),
                content=f"entry {i}",
            )
            self._entries[space_key].append(entry)
            created.append(entry)
        return created

    def add(self, entry: Entry) -> None:
        """Insert a prebuilt entry."""
        self._entries[entry.space_key].append(entry)

    def fail_next(self, operation: str, *errors: BaseException) -> None:
        """Queue errors raised by the next calls to ``operation``."""
        self._failures[operation].extend(errors)

    def hold(self, operation: str) -> asyncio.Event:
        """Block calls to ``operation`` until the returned event is set."""
        event = asyncio.Event()
        self._holds[operation] = event
        return event

    def release(self, operation: str) -> None:
        """Unblock calls held on ``operation``."""
        event = self._holds.pop(operation, None)
        if event is not None:
            event.set()

    def stored(self, space_key: str) -> list[Entry]:
        """Return a space's stored entries in feed order."""
        return sort_entries(self._entries.get(space_key, []))

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        hold = self._holds.get(operation)
        if hold is not None:
            await hold.wait()
        if self._failures[operation]:
            raise self._failures[operation].pop(0)

    # ------------------------------------------------------------------
    # RemoteDataGateway
    # ------------------------------------------------------------------

    async def create_entry(
        self,
        space_key: str,
        content: str,
        tags: list[str],
        trade_fields: TradeFields,
        author_id: str,
    ) -> Entry:
        await self._enter("create_entry")
        if not content.strip():
            raise ValidationError("content is required", field="content")

        author = next((p for p in self.profiles if p.id == author_id), None)
        entry = Entry(
            id=f"e{next(self._ids)}",
            space_key=space_key,
            author_id=author_id,
            author_display_name=author.display_name if author else None,
            created_at=self.clock(),
            content=content,
            tags=list(tags),
            trade_type=trade_fields.trade_type,
            profit_loss=trade_fields.profit_loss,
            mental_state=trade_fields.mental_state,
            image=trade_fields.image,
        )
        self._entries[space_key].append(entry)
        logger.debug(f"Stored entry {entry.id} in {space_key}")
        return entry

    async def list_entries(
        self,
        space_key: str,
        page_size: int,
        cursor: Cursor | None = None,
    ) -> Page:
        await self._enter("list_entries")
        if page_size < 1:
            raise ValidationError("page_size must be >= 1", field="page_size")

        ordered = self.stored(space_key)
        if cursor is not None:
            ordered = [e for e in ordered if cursor.precedes(e)]
        return Page.from_entries(ordered[:page_size], page_size)

    async def list_profiles(self) -> list[Profile]:
        await self._enter("list_profiles")
        return list(self.profiles)

    async def delete_entry(self, space_key: str, entry_id: str) -> None:
        await self._enter("delete_entry")
        before = len(self._entries[space_key])
        self._entries[space_key] = [e for e in self._entries[space_key] if e.id != entry_id]
        if len(self._entries[space_key]) == before:
            raise ValidationError(f"entry {entry_id} not found", field="id", space_key=space_key)

    async def aclose(self) -> None:
        """Nothing to release; present for parity with HttpGateway."""


__all__ = ["InMemoryGateway"]
