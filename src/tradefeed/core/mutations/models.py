"""
Mutation lifecycle models.

Every locally initiated write is tracked as a Mutation that moves from
PENDING to exactly one terminal state:

    PENDING ──► CONFIRMED
        └────► FAILED

Terminal states are final; any other transition raises
InvalidMutationTransition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from tradefeed.core.entries.models import Entry
from tradefeed.core.gateway.exceptions import GatewayError


class MutationKind(str, Enum):
    """What a mutation does to the feed."""

    CREATE = "create"
    DELETE = "delete"


class MutationState(str, Enum):
    """Lifecycle state of a mutation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not MutationState.PENDING


_ALLOWED_TRANSITIONS: dict[MutationState, frozenset[MutationState]] = {
    MutationState.PENDING: frozenset({MutationState.CONFIRMED, MutationState.FAILED}),
    MutationState.CONFIRMED: frozenset(),
    MutationState.FAILED: frozenset(),
}


class InvalidMutationTransition(ValueError):
    """Raised when a mutation is moved out of a terminal state."""

    def __init__(self, mutation_id: str, current: MutationState, target: MutationState) -> None:
        self.mutation_id = mutation_id
        self.current = current
        self.target = target
        super().__init__(
            f"Mutation {mutation_id} cannot move from {current.value} to {target.value}"
        )


@dataclass
class Mutation:
    """
    One tracked write against the remote store.

    Attributes:
        id: Tentative entry id for creates, target entry id for deletes
        kind: Create or delete
        space_key: Space the write targets
        state: Current lifecycle state
        entry: Optimistic entry while pending, confirmed entry once confirmed
        error: Failure reported by the gateway or validation
        attempts: Gateway calls made so far
    """

    id: str
    kind: MutationKind
    space_key: str
    state: MutationState = MutationState.PENDING
    entry: Entry | None = None
    error: GatewayError | None = None
    attempts: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    settled_at: datetime | None = None

    def transition(self, target: MutationState) -> None:
        """
        Move to ``target``.

        Raises:
            InvalidMutationTransition: If the move is not allowed
        """
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidMutationTransition(self.id, self.state, target)
        self.state = target
        if target.is_terminal:
            self.settled_at = datetime.now(timezone.utc)

    def confirm(self, entry: Entry | None) -> None:
        self.transition(MutationState.CONFIRMED)
        self.entry = entry

    def fail(self, error: GatewayError) -> None:
        self.transition(MutationState.FAILED)
        self.error = error


@dataclass(frozen=True)
class MutationResult:
    """
    Outcome of a mutation, returned to the caller instead of raising.

    Example:
        >>> result = await controller.submit("j1", draft)
        >>> if result.ok:
        ...     show(result.entry)
        ... else:
        ...     show_error(result.error)
    """

    mutation: Mutation

    @property
    def ok(self) -> bool:
        return self.mutation.state is MutationState.CONFIRMED

    @property
    def entry(self) -> Entry | None:
        return self.mutation.entry if self.ok else None

    @property
    def error(self) -> GatewayError | None:
        return self.mutation.error


__all__ = [
    "InvalidMutationTransition",
    "Mutation",
    "MutationKind",
    "MutationResult",
    "MutationState",
]
