"""
Entry data models for tradefeed.

Defines the feed entry, the keyset cursor used for pagination, fetched
pages, the per-space feed state owned by the EntryStore and the read-only
snapshot handed to the UI layer.

Entries are ordered newest first by ``(created_at desc, id desc)``. The id
tie-break keeps ordering deterministic when timestamps collide.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Display name given to entries whose author has not been resolved yet
UNRESOLVED_AUTHOR = "unknown"

# Prefix reserved for locally allocated ids; the remote store never issues it
TENTATIVE_ID_PREFIX = "tmp-"


class TradeType(str, Enum):
    """Kind of trade an entry journals."""

    DAY_TRADE = "day-trade"
    SWING = "swing"
    INVESTMENT = "investment"
    ECOMMERCE = "ecommerce"
    GENERAL = "general"


class MentalState(str, Enum):
    """Self-reported state of mind attached to an entry."""

    CALM = "calm"
    FOCUSED = "focused"
    AGGRESSIVE = "aggressive"
    FEARFUL = "fearful"


def new_tentative_id() -> str:
    """Allocate an id from the tentative namespace."""
    return f"{TENTATIVE_ID_PREFIX}{uuid.uuid4().hex}"


def is_tentative_id(entry_id: str) -> bool:
    """Return True if the id was allocated locally for an optimistic entry."""
    return entry_id.startswith(TENTATIVE_ID_PREFIX)


class TradeFields(BaseModel):
    """Optional structured trade data carried by an entry."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    trade_type: TradeType | None = None
    profit_loss: float | None = Field(
        default=None,
        description="Realized P&L; None when not provided or not parsable",
    )
    mental_state: MentalState | None = None
    image: str | None = None


class EntryDraft(BaseModel):
    """
    Caller-supplied fields for a new entry.

    Validation of required fields happens in the mutation controller so
    that an invalid draft can be rejected without raising.

    Example:
        >>> draft = EntryDraft(content="Took profits early", mental_state="calm")
        >>> draft.trade_fields().mental_state
        <MentalState.CALM: 'calm'>
    """

    content: str = ""
    tags: list[str] = Field(default_factory=list)
    trade_type: TradeType | None = None
    profit_loss: float | None = None
    mental_state: MentalState | None = None
    image: str | None = None

    def trade_fields(self) -> TradeFields:
        """Return the structured trade fields of the draft."""
        return TradeFields(
            trade_type=self.trade_type,
            profit_loss=self.profit_loss,
            mental_state=self.mental_state,
            image=self.image,
        )


class Entry(BaseModel):
    """
    A single journal entry in a space's feed.

    Entries are immutable; updates go through ``model_copy(update=...)``
    and are written back by the EntryStore.

    Example:
        >>> entry = Entry(
        ...     id="e1",
        ...     space_key="j1",
        ...     author_id="u1",
        ...     created_at=datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc),
        ...     content="Faded the open",
        ... )
        >>> entry.author_display_name
        'unknown'
        >>> entry.is_tentative
        False
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Server id, or tmp-* for optimistic entries")
    space_key: str = Field(..., min_length=1)
    author_id: str
    author_display_name: str = Field(default=UNRESOLVED_AUTHOR)
    created_at: datetime
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    trade_type: TradeType | None = None
    profit_loss: float | None = None
    mental_state: MentalState | None = None
    image: str | None = None

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so ordering never mixes the two."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("author_display_name", mode="before")
    @classmethod
    def default_display_name(cls, v: object) -> object:
        """Missing or blank names become the placeholder."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return UNRESOLVED_AUTHOR
        return v

    @property
    def is_tentative(self) -> bool:
        """True while the entry is an unconfirmed optimistic insert."""
        return is_tentative_id(self.id)

    @property
    def is_author_resolved(self) -> bool:
        """True once the display name is a real name, not the placeholder."""
        return self.author_display_name != UNRESOLVED_AUTHOR

    @property
    def cursor(self) -> Cursor:
        """Keyset position of this entry."""
        return Cursor(created_at=self.created_at, id=self.id)

    def sort_key(self) -> tuple[datetime, str]:
        """Ascending key; sort with ``reverse=True`` for feed order."""
        return (self.created_at, self.id)


class Cursor(BaseModel):
    """
    Keyset pagination token: the ``(created_at, id)`` of the last entry
    of a page.

    The next page holds entries strictly older than the cursor in feed
    order, so inserts between fetches never shift the window.
    """

    model_config = ConfigDict(frozen=True)

    created_at: datetime
    id: str

    def precedes(self, entry: Entry) -> bool:
        """Return True if ``entry`` comes after this cursor in feed order."""
        return entry.sort_key() < (self.created_at, self.id)


class Page(BaseModel):
    """One fetched page of entries, newest first."""

    entries: list[Entry] = Field(default_factory=list)
    end_cursor: Cursor | None = None
    is_last_page: bool = False

    @classmethod
    def from_entries(cls, entries: list[Entry], page_size: int) -> Page:
        """Build a page, deriving the end cursor and last-page flag."""
        return cls(
            entries=entries,
            end_cursor=entries[-1].cursor if entries else None,
            is_last_page=len(entries) < page_size,
        )

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class SpaceFeedState:
    """
    Mutable feed state for one space, owned exclusively by the EntryStore.

    Attributes:
        space_key: Space this state belongs to
        entries: Entries in feed order
        cursor: Keyset cursor for the next page, None before the first load
        has_more: Whether older entries may exist
        last_loaded_at: When the first page was last applied
        is_loading_more: True while a next-page fetch is in flight
        epoch: Sequence number of the last applied first-page load
        local_inserts: Sequence number at which each locally prepended id
            was inserted, used to keep fresh inserts across a racing load
        tombstones: Ids deleted locally that later loads must not resurrect
    """

    space_key: str
    entries: list[Entry] = field(default_factory=list)
    cursor: Cursor | None = None
    has_more: bool = True
    last_loaded_at: datetime | None = None
    is_loading_more: bool = False
    epoch: int = 0
    local_inserts: dict[str, int] = field(default_factory=dict)
    tombstones: set[str] = field(default_factory=set)

    def index_of(self, entry_id: str) -> int | None:
        """Return the position of an entry, or None if absent."""
        for i, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return i
        return None

    def get(self, entry_id: str) -> Entry | None:
        idx = self.index_of(entry_id)
        return None if idx is None else self.entries[idx]


class FeedSnapshot(BaseModel):
    """Read-only view of a space's feed for the UI layer."""

    model_config = ConfigDict(frozen=True)

    space_key: str
    entries: tuple[Entry, ...] = ()
    has_more: bool = True
    is_loading_more: bool = False

    @property
    def ids(self) -> list[str]:
        return [e.id for e in self.entries]


class Profile(BaseModel):
    """Public profile of a user, used to resolve author display names."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)


__all__ = [
    "Cursor",
    "Entry",
    "EntryDraft",
    "FeedSnapshot",
    "MentalState",
    "Page",
    "Profile",
    "SpaceFeedState",
    "TENTATIVE_ID_PREFIX",
    "TradeFields",
    "TradeType",
    "UNRESOLVED_AUTHOR",
    "is_tentative_id",
    "new_tentative_id",
]
