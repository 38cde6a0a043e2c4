"""
Author name reconciliation.

Entries can arrive before the profiles of their authors. Such entries
carry the placeholder display name until a profile refresh makes the
name resolvable; the reconciler then patches every loaded entry in every
space. Either side may finish loading first without affecting the result.

Rules:
- Only placeholder names are ever replaced.
- A resolved name is never overwritten with the placeholder, even when
  the profile later disappears from the directory.
- Running twice with the same inputs changes nothing the second time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping

from tradefeed.core.entries.models import UNRESOLVED_AUTHOR, Profile, SpaceFeedState
from tradefeed.core.entries.store import EntryStore
from tradefeed.core.gateway.exceptions import ReconciliationMiss
from tradefeed.core.profiles.directory import ProfileDirectory

logger = logging.getLogger(__name__)


class ProfileReconciler:
    """
    Patches unresolved author names into loaded entries.

    Attach it to a ProfileDirectory to run on every refresh:

        >>> reconciler = ProfileReconciler(store)
        >>> reconciler.attach(directory)
        >>> await directory.refresh()   # entries are patched here

    Attributes:
        misses: ReconciliationMiss records from the last run
    """

    def __init__(self, store: EntryStore | None = None) -> None:
        """
        Initialize the reconciler.

        Args:
            store: Store whose states are reconciled on directory updates
        """
        self.store = store
        self.misses: list[ReconciliationMiss] = []
        self._detach: Callable[[], None] | None = None

    def reconcile(
        self,
        all_space_states: Mapping[str, SpaceFeedState] | Iterable[SpaceFeedState],
        profiles: Iterable[Profile],
    ) -> int:
        """
        Replace placeholder author names wherever a profile matches.

        Args:
            all_space_states: Every loaded space's state
            profiles: Currently known profiles

        Returns:
            Number of entries patched
        """
        names = {
            p.id: p.display_name
            for p in profiles
            if p.display_name and p.display_name != UNRESOLVED_AUTHOR
        }
        states = (
            all_space_states.values()
            if isinstance(all_space_states, Mapping)
            else all_space_states
        )

        patched = 0
        misses: list[ReconciliationMiss] = []
        for state in states:
            for idx, entry in enumerate(state.entries):
                if entry.is_author_resolved:
                    continue
                name = names.get(entry.author_id)
                if name is None:
                    misses.append(ReconciliationMiss(entry.author_id, state.space_key, entry.id))
                    continue
                state.entries[idx] = entry.model_copy(update={"author_display_name": name})
                patched += 1

        self.misses = misses
        if misses:
            unresolved = sorted({m.author_id for m in misses})
            logger.warning(
                f"{len(misses)} entries still unresolved, no profile for: {', '.join(unresolved)}"
            )
        if patched:
            logger.info(f"Resolved author names on {patched} entries")
        return patched

    def attach(self, directory: ProfileDirectory) -> None:
        """Subscribe to a directory so each refresh reconciles the store."""
        if self.store is None:
            raise ValueError("attach() needs a reconciler created with a store")
        self.detach()
        self._detach = directory.subscribe(self._on_profiles)

    def detach(self) -> None:
        """Stop listening to the attached directory, if any."""
        if self._detach is not None:
            self._detach()
            self._detach = None

    def _on_profiles(self, profiles: list[Profile]) -> None:
        if self.store is None:
            return
        self.reconcile(self.store.states(), profiles)


__all__ = ["ProfileReconciler"]
