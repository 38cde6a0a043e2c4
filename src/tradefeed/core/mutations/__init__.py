"""
Optimistic writes: the mutation state machine and its controller.
"""

from tradefeed.core.mutations.controller import OptimisticMutationController, validate_draft
from tradefeed.core.mutations.models import (
    InvalidMutationTransition,
    Mutation,
    MutationKind,
    MutationResult,
    MutationState,
)

__all__ = [
    "InvalidMutationTransition",
    "Mutation",
    "MutationKind",
    "MutationResult",
    "MutationState",
    "OptimisticMutationController",
    "validate_draft",
]
