"""
Ordering and merge helpers for feed entries.

Feed order is ``(created_at desc, id desc)``. Client clocks are not
monotonic, so the id tie-break is what keeps pagination and UI diffing
stable when two entries share a timestamp.
"""

from __future__ import annotations

from collections.abc import Iterable

from tradefeed.core.entries.models import Entry


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Return entries in feed order."""
    return sorted(entries, key=Entry.sort_key, reverse=True)


def merge_entries(
    existing: Iterable[Entry],
    incoming: Iterable[Entry],
    exclude: set[str] | None = None,
) -> list[Entry]:
    """
    Union two entry collections by id and return them in feed order.

    On an id collision the incoming entry wins (refresh semantics), except
    that a resolved author name is never replaced by the placeholder.

    Args:
        existing: Entries already held
        incoming: Freshly fetched entries
        exclude: Ids to drop from the result (tombstones)

    Returns:
        Deduplicated entries sorted newest first

    Example:
        >>> merged = merge_entries(page_one.entries, page_two.entries)
        >>> len({e.id for e in merged}) == len(merged)
        True
    """
    exclude = exclude or set()
    by_id: dict[str, Entry] = {}

    for entry in existing:
        if entry.id not in exclude:
            by_id[entry.id] = entry

    for entry in incoming:
        if entry.id in exclude:
            continue
        previous = by_id.get(entry.id)
        if (
            previous is not None
            and previous.is_author_resolved
            and not entry.is_author_resolved
            and previous.author_id == entry.author_id
        ):
            entry = entry.model_copy(
                update={"author_display_name": previous.author_display_name}
            )
        by_id[entry.id] = entry

    return sort_entries(by_id.values())


__all__ = ["merge_entries", "sort_entries"]
