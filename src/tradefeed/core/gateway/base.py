"""
Remote data gateway protocol.

The synchronization engine only ever talks to the remote store through
this contract. Any backing store that satisfies it works: the bundled
HTTP gateway, the in-memory gateway used by tests, or an adapter over a
hosted database client.

Errors must be reported as one of NetworkError, AuthenticationError or
ValidationError from ``tradefeed.core.gateway.exceptions``.
"""

from typing import Protocol, runtime_checkable

from tradefeed.core.entries.models import Cursor, Entry, Page, Profile, TradeFields


@runtime_checkable
class RemoteDataGateway(Protocol):
    """
    Protocol for remote data gateway implementations.

    Implementations should:
    - Return pages in feed order ``(created_at desc, id desc)``
    - Treat the cursor as an exclusive keyset bound, never an offset
    - Assign server ids that never start with the tentative prefix
    """

    async def create_entry(
        self,
        space_key: str,
        content: str,
        tags: list[str],
        trade_fields: TradeFields,
        author_id: str,
    ) -> Entry:
        """
        Persist a new entry and return it as stored.

        Returns:
            The confirmed Entry with its server-assigned id and timestamp
        """
        ...

    async def list_entries(
        self,
        space_key: str,
        page_size: int,
        cursor: Cursor | None = None,
    ) -> Page:
        """
        Fetch one page of a space's entries.

        Args:
            space_key: Space to read
            page_size: Maximum number of entries to return
            cursor: Exclusive keyset bound; None for the first page

        Returns:
            Page of entries strictly after ``cursor`` in feed order
        """
        ...

    async def list_profiles(self) -> list[Profile]:
        """Return every public profile."""
        ...

    async def delete_entry(self, space_key: str, entry_id: str) -> None:
        """Delete an entry from a space."""
        ...


__all__ = ["RemoteDataGateway"]
