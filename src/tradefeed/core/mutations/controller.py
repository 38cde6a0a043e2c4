"""
Optimistic mutation controller.

Creating an entry is split into a synchronous half and an asynchronous
half:

1. The draft is validated. An invalid draft fails fast with a
   ValidationError and touches no state at all.
2. A tentative entry is built and prepended to the space's feed before
   anything is awaited, so it is visible immediately.
3. The entry is sent to the remote store, with bounded retries for
   transient network errors and a timeout per attempt.
4. On success the tentative entry is swapped for the confirmed one at the
   head of the feed. On failure it is removed and the error is handed
   back in the MutationResult.

No path leaves an orphaned tentative entry behind.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from tradefeed.core.entries.models import Entry, EntryDraft, Profile, new_tentative_id
from tradefeed.core.entries.store import EntryStore
from tradefeed.core.gateway.exceptions import GatewayError, NetworkError, ValidationError
from tradefeed.core.mutations.models import (
    Mutation,
    MutationKind,
    MutationResult,
    MutationState,
)
from tradefeed.core.retry import RetryConfig, retry_async
from tradefeed.core.timeouts import call_with_timeout

if TYPE_CHECKING:
    from tradefeed.core.gateway.base import RemoteDataGateway

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


def validate_draft(draft: EntryDraft, require_mental_state: bool = True) -> ValidationError | None:
    """
    Check the required fields of a draft.

    Content is always required. The mental state is required unless the
    caller opts out.

    Returns:
        The first ValidationError found, or None if the draft is valid
    """
    if not draft.content or not draft.content.strip():
        return ValidationError("content is required", field="content")
    if require_mental_state and draft.mental_state is None:
        return ValidationError("mental state is required", field="mental_state")
    return None


class OptimisticMutationController:
    """
    Drives entry writes from tentative to confirmed or failed.

    Example:
        >>> controller = OptimisticMutationController(store, gateway, author)
        >>> result = await controller.submit("j1", EntryDraft(content="Hello", mental_state="calm"))
        >>> result.ok, result.entry.id
        (True, 'e1')
    """

    def __init__(
        self,
        store: EntryStore,
        gateway: RemoteDataGateway,
        author: Profile,
        *,
        retry: RetryConfig | None = None,
        require_mental_state: bool = True,
        timeout_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        """
        Initialize the controller.

        Args:
            store: Store holding the feeds being written to
            gateway: Remote data gateway
            author: Profile of the signed-in user creating entries
            retry: Retry policy for transient network errors
            require_mental_state: Reject drafts without a mental state
            timeout_seconds: Per-attempt timeout for gateway calls
            clock: Timestamp source for tentative entries
            sleep: Backoff sleep (injectable for tests)
            history_limit: Settled mutations kept for inspection; older ones
                are forgotten. Pending mutations are always kept
        """
        self.store = store
        self.gateway = gateway
        self.author = author
        self.retry = retry or RetryConfig()
        self.require_mental_state = require_mental_state
        self.timeout_seconds = timeout_seconds
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.sleep = sleep
        self.history_limit = max(0, history_limit)
        self._mutations: dict[str, Mutation] = {}

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def mutations(self) -> tuple[Mutation, ...]:
        """Every tracked mutation, oldest first."""
        return tuple(self._mutations.values())

    def get(self, mutation_id: str) -> Mutation | None:
        return self._mutations.get(mutation_id)

    def pending(self, space_key: str | None = None) -> list[Mutation]:
        """Mutations still awaiting the remote store, optionally for one space."""
        return [
            m
            for m in self._mutations.values()
            if m.state is MutationState.PENDING
            and (space_key is None or m.space_key == space_key)
        ]

    def clear_settled(self) -> int:
        """Forget confirmed and failed mutations. Returns how many were dropped."""
        settled = [k for k, m in self._mutations.items() if m.state.is_terminal]
        for key in settled:
            del self._mutations[key]
        return len(settled)

    def _settle(self, mutation: Mutation) -> MutationResult:
        settled = [k for k, m in self._mutations.items() if m.state.is_terminal]
        for key in settled[: max(0, len(settled) - self.history_limit)]:
            del self._mutations[key]
        return MutationResult(mutation)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def begin(self, space_key: str, draft: EntryDraft) -> Mutation:
        """
        Run the synchronous half of a create.

        Validates the draft and, if valid, prepends the tentative entry.
        Invalid drafts produce a FAILED mutation and leave every feed as it was.

        Returns:
            The tracked mutation (PENDING, or FAILED on validation error)
        """
        tentative_id = new_tentative_id()
        mutation = Mutation(id=tentative_id, kind=MutationKind.CREATE, space_key=space_key)

        error = validate_draft(draft, self.require_mental_state)
        if error is not None:
            logger.debug(f"Rejected draft for {space_key}: {error}")
            mutation.fail(error)
            return mutation

        entry = Entry(
            id=tentative_id,
            space_key=space_key,
            author_id=self.author.id,
            author_display_name=self.author.display_name,
            created_at=self.clock(),
            content=draft.content,
            tags=list(draft.tags),
            trade_type=draft.trade_type,
            profit_loss=draft.profit_loss,
            mental_state=draft.mental_state,
            image=draft.image,
        )
        mutation.entry = entry
        self._mutations[tentative_id] = mutation
        self.store.prepend(space_key, entry)
        return mutation

    async def submit(self, space_key: str, draft: EntryDraft) -> MutationResult:
        """
        Create an entry optimistically.

        The tentative entry is in the feed before this coroutine first
        suspends. Errors are returned in the result, never raised.

        Returns:
            MutationResult with the confirmed entry or the failure
        """
        mutation = self.begin(space_key, draft)
        if mutation.state is MutationState.FAILED:
            return MutationResult(mutation)
        return await self._send(mutation, draft)

    def start(
        self, space_key: str, draft: EntryDraft
    ) -> tuple[Mutation, asyncio.Task[MutationResult] | None]:
        """
        Begin a create and schedule the remote half as a task.

        Must be called from a running event loop. The tentative entry is
        visible when this returns.

        Returns:
            The mutation and the task sending it, or None if validation failed
        """
        mutation = self.begin(space_key, draft)
        if mutation.state is MutationState.FAILED:
            return mutation, None
        task = asyncio.get_running_loop().create_task(self._send(mutation, draft))
        return mutation, task

    async def _send(self, mutation: Mutation, draft: EntryDraft) -> MutationResult:
        space_key = mutation.space_key

        def attempt() -> Awaitable[Entry]:
            mutation.attempts += 1
            return call_with_timeout(
                self.gateway.create_entry(
                    space_key,
                    draft.content,
                    list(draft.tags),
                    draft.trade_fields(),
                    self.author.id,
                ),
                self.timeout_seconds,
                operation="create_entry",
            )

        try:
            confirmed = await retry_async(
                attempt, self.retry, operation="create_entry", sleep=self.sleep
            )
        except GatewayError as e:
            self.store.remove_entry(space_key, mutation.id)
            mutation.fail(e)
            logger.error(
                f"Entry {mutation.id} in {space_key} failed after "
                f"{mutation.attempts} attempt(s): {e}"
            )
            return self._settle(mutation)
        except asyncio.CancelledError:
            self.store.remove_entry(space_key, mutation.id)
            mutation.fail(NetworkError("create_entry cancelled"))
            self._settle(mutation)
            raise
        except Exception as e:
            self.store.remove_entry(space_key, mutation.id)
            mutation.fail(GatewayError(f"create_entry crashed: {e}"))
            self._settle(mutation)
            raise

        confirmed = self._normalize(confirmed, space_key)
        if self.store.has_space(space_key):
            self.store.remove_entry(space_key, mutation.id)
            self.store.prepend(space_key, confirmed)
        else:
            logger.debug(f"Not applying {confirmed.id}: {space_key} was discarded")
        mutation.confirm(confirmed)
        logger.info(f"Entry {mutation.id} confirmed as {confirmed.id} in {space_key}")
        return self._settle(mutation)

    def _normalize(self, entry: Entry, space_key: str) -> Entry:
        update: dict[str, object] = {}
        if entry.space_key != space_key:
            update["space_key"] = space_key
        if not entry.is_author_resolved and entry.author_id == self.author.id:
            update["author_display_name"] = self.author.display_name
        return entry.model_copy(update=update) if update else entry

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, space_key: str, entry_id: str) -> MutationResult:
        """
        Delete an entry optimistically.

        The entry is tombstoned and removed at once, so a load racing the
        delete cannot bring it back. If the remote delete fails, the
        tombstone is lifted and the entry restored in feed order.

        Returns:
            MutationResult (CONFIRMED with no entry, or FAILED with the error)
        """
        mutation = Mutation(id=entry_id, kind=MutationKind.DELETE, space_key=space_key)
        state = self.store.state(space_key)
        target = state.get(entry_id)
        if target is not None and target.is_tentative:
            mutation.fail(
                ValidationError("cannot delete an entry that is still pending", field="id")
            )
            return MutationResult(mutation)

        removed = self.store.tombstone(space_key, entry_id)
        mutation.entry = removed
        self._mutations[f"delete:{entry_id}"] = mutation

        def attempt() -> Awaitable[None]:
            mutation.attempts += 1
            return call_with_timeout(
                self.gateway.delete_entry(space_key, entry_id),
                self.timeout_seconds,
                operation="delete_entry",
            )

        try:
            await retry_async(attempt, self.retry, operation="delete_entry", sleep=self.sleep)
        except GatewayError as e:
            self.store.restore(space_key, entry_id, removed)
            mutation.fail(e)
            logger.error(f"Delete of {entry_id} in {space_key} failed: {e}")
            return self._settle(mutation)
        except asyncio.CancelledError:
            self.store.restore(space_key, entry_id, removed)
            mutation.fail(NetworkError("delete_entry cancelled"))
            self._settle(mutation)
            raise
        except Exception as e:
            self.store.restore(space_key, entry_id, removed)
            mutation.fail(GatewayError(f"delete_entry crashed: {e}"))
            self._settle(mutation)
            raise

        mutation.confirm(None)
        logger.info(f"Deleted entry {entry_id} from {space_key}")
        return self._settle(mutation)


__all__ = ["DEFAULT_HISTORY_LIMIT", "OptimisticMutationController", "validate_draft"]
