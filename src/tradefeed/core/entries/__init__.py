"""
Feed entries: models, ordering and the per-space store.

Entries are kept newest first by ``(created_at desc, id desc)`` and paged
with a ``(created_at, id)`` keyset cursor, never a numeric offset.
"""

from tradefeed.core.entries.models import (
    TENTATIVE_ID_PREFIX,
    UNRESOLVED_AUTHOR,
    Cursor,
    Entry,
    EntryDraft,
    FeedSnapshot,
    MentalState,
    Page,
    Profile,
    SpaceFeedState,
    TradeFields,
    TradeType,
    is_tentative_id,
    new_tentative_id,
)
from tradefeed.core.entries.ordering import merge_entries, sort_entries
from tradefeed.core.entries.store import EntryStore

__all__ = [
    "Cursor",
    "Entry",
    "EntryDraft",
    "EntryStore",
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
    "merge_entries",
    "new_tentative_id",
    "sort_entries",
]
