"""
Tests for the optimistic mutation controller and mutation lifecycle.

Tests cover:
- Tentative entries visible before the remote call resolves
- Confirmation swapping the tentative entry for the stored one
- Failure, cancellation and crash paths leaving no orphaned entry
- Validation rejecting drafts without touching any feed
- Retries for transient errors only
- Optimistic deletes with tombstones and restore on failure
"""

import asyncio

import pytest

from tradefeed.core.entries.models import EntryDraft, MentalState, Profile, is_tentative_id
from tradefeed.core.entries.store import EntryStore
from tradefeed.core.gateway.exceptions import (
    AuthenticationError,
    GatewayError,
    NetworkError,
    ValidationError,
)
from tradefeed.core.gateway.memory import InMemoryGateway
from tradefeed.core.mutations.controller import OptimisticMutationController, validate_draft
from tradefeed.core.mutations.models import (
    InvalidMutationTransition,
    Mutation,
    MutationKind,
    MutationResult,
    MutationState,
)
from tradefeed.core.retry import RetryConfig


def calm(content: str = "Hello", **kwargs) -> EntryDraft:
    return EntryDraft(content=content, mental_state=MentalState.CALM, **kwargs)


async def settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


async def instant(_delay: float) -> None:
    pass


# ==============================================================================
# Mutation model
# ==============================================================================


class TestMutation:
    """Tests for the Mutation state machine."""

    def test_starts_pending(self) -> None:
        mutation = Mutation(id="tmp-1", kind=MutationKind.CREATE, space_key="j1")
        assert mutation.state is MutationState.PENDING
        assert mutation.settled_at is None

    def test_confirm(self) -> None:
        """Test PENDING moves to CONFIRMED and records the settle time."""
        mutation = Mutation(id="tmp-1", kind=MutationKind.CREATE, space_key="j1")
        mutation.confirm(None)
        assert mutation.state is MutationState.CONFIRMED
        assert mutation.settled_at is not None

    def test_fail(self) -> None:
        """Test PENDING moves to FAILED and keeps the error."""
        mutation = Mutation(id="tmp-1", kind=MutationKind.CREATE, space_key="j1")
        error = NetworkError("offline")
        mutation.fail(error)
        assert mutation.state is MutationState.FAILED
        assert MutationResult(mutation).error is error

    @pytest.mark.parametrize("settle_first", ["confirm", "fail"])
    def test_terminal_states_are_final(self, settle_first: str) -> None:
        """Test no transition leaves a terminal state."""
        mutation = Mutation(id="tmp-1", kind=MutationKind.CREATE, space_key="j1")
        if settle_first == "confirm":
            mutation.confirm(None)
        else:
            mutation.fail(NetworkError("offline"))

        with pytest.raises(InvalidMutationTransition, match="cannot move from"):
            mutation.transition(MutationState.CONFIRMED)
        with pytest.raises(InvalidMutationTransition):
            mutation.fail(NetworkError("again"))

    def test_result_hides_entry_unless_confirmed(self) -> None:
        mutation = Mutation(id="tmp-1", kind=MutationKind.CREATE, space_key="j1")
        assert MutationResult(mutation).ok is False
        assert MutationResult(mutation).entry is None


class TestValidateDraft:
    """Tests for validate_draft."""

    def test_valid(self) -> None:
        assert validate_draft(calm()) is None

    def test_blank_content(self) -> None:
        """Test whitespace-only content is rejected."""
        error = validate_draft(calm("   "))
        assert isinstance(error, ValidationError)
        assert error.field == "content"

    def test_missing_mental_state(self) -> None:
        """Test the mental state is required by default."""
        error = validate_draft(EntryDraft(content="Hello"))
        assert error is not None and error.field == "mental_state"
        assert str(error) == "mental_state: mental state is required"

    def test_mental_state_optional(self) -> None:
        """Test callers can drop the mental state requirement."""
        assert validate_draft(EntryDraft(content="Hello"), require_mental_state=False) is None


# ==============================================================================
# Create
# ==============================================================================


class TestSubmit:
    """Tests for optimistic creates."""

    @pytest.mark.asyncio
    async def test_submit_minimal_entry(
        self, store: EntryStore, gateway: InMemoryGateway, author: Profile
    ) -> None:
        """Test submitting content only to an empty space confirms one entry."""
        controller = OptimisticMutationController(
            store, gateway, author, require_mental_state=False, sleep=instant
        )

        result = await controller.submit("j1", EntryDraft(content="Hello"))

        assert result.ok is True
        assert result.entry is not None
        snapshot = store.get_snapshot("j1")
        assert snapshot.ids == [result.entry.id]
        assert not is_tentative_id(result.entry.id)
        assert snapshot.entries[0].content == "Hello"
        assert snapshot.entries[0].author_display_name == "alice"

    @pytest.mark.asyncio
    async def test_tentative_entry_visible_before_confirmation(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test the entry is at the head of the feed while the create is in flight."""
        gateway.seed("j1", 3)
        await store.load("j1")
        gateway.hold("create_entry")

        mutation, task = controller.start("j1", calm())

        snapshot = store.get_snapshot("j1")
        assert snapshot.ids[0] == mutation.id
        assert is_tentative_id(snapshot.ids[0])
        assert snapshot.entries[0].content == "Hello"
        assert controller.pending("j1") == [mutation]

        gateway.release("create_entry")
        result = await task

        snapshot = store.get_snapshot("j1")
        assert snapshot.ids[0] == result.entry.id
        assert mutation.id not in snapshot.ids
        assert len(snapshot.entries) == 4
        assert controller.pending() == []

    @pytest.mark.asyncio
    async def test_submit_prepends_before_first_suspension(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a submit task shows its entry by the time it first yields."""
        gateway.hold("create_entry")
        task = asyncio.create_task(controller.submit("j1", calm()))
        await settle()

        assert len(store.get_snapshot("j1").entries) == 1
        assert store.get_snapshot("j1").entries[0].is_tentative

        gateway.release("create_entry")
        assert (await task).ok

    @pytest.mark.asyncio
    async def test_rejected_create_removes_entry(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a permanent failure removes the tentative entry and reports the error."""
        gateway.fail_next("create_entry", AuthenticationError("session expired"))

        result = await controller.submit("j1", calm())

        assert result.ok is False
        assert isinstance(result.error, AuthenticationError)
        assert result.mutation.state is MutationState.FAILED
        assert store.get_snapshot("j1").entries == ()
        assert gateway.calls["create_entry"] == 1

    @pytest.mark.asyncio
    async def test_remote_validation_error_not_retried(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a ValidationError from the remote store fails at once."""
        gateway.fail_next("create_entry", ValidationError("tag too long", field="tags"))

        result = await controller.submit("j1", calm())

        assert isinstance(result.error, ValidationError)
        assert result.mutation.attempts == 1

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test network errors are retried until the create goes through."""
        gateway.fail_next("create_entry", NetworkError("reset"), NetworkError("503", status_code=503))

        result = await controller.submit("j1", calm())

        assert result.ok is True
        assert result.mutation.attempts == 3
        assert gateway.calls["create_entry"] == 3
        assert store.get_snapshot("j1").ids == [result.entry.id]

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test the last network error is reported once attempts run out."""
        gateway.fail_next(
            "create_entry", NetworkError("a"), NetworkError("b"), NetworkError("c")
        )

        result = await controller.submit("j1", calm())

        assert result.ok is False
        assert str(result.error) == "c"
        assert result.mutation.attempts == 3
        assert store.get_snapshot("j1").entries == ()

    @pytest.mark.asyncio
    async def test_timeout_reported_as_network_error(self, author: Profile) -> None:
        """Test a create that exceeds its budget fails with timed_out set."""
        gateway = InMemoryGateway(latency=1.0)
        store = EntryStore(gateway)
        controller = OptimisticMutationController(
            store,
            gateway,
            author,
            retry=RetryConfig(max_attempts=1),
            timeout_seconds=0.01,
        )

        result = await controller.submit("j1", calm())

        assert isinstance(result.error, NetworkError)
        assert result.error.timed_out is True
        assert store.get_snapshot("j1").entries == ()

    @pytest.mark.asyncio
    async def test_invalid_draft_changes_nothing(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test validation failures leave the feed and the tracker untouched."""
        gateway.seed("j1", 2)
        await store.load("j1")
        before = store.get_snapshot("j1")

        result = await controller.submit("j1", EntryDraft(content="", mental_state="calm"))

        assert result.ok is False
        assert isinstance(result.error, ValidationError)
        assert store.get_snapshot("j1") == before
        assert controller.mutations() == ()
        assert gateway.calls["create_entry"] == 0

    @pytest.mark.asyncio
    async def test_missing_mental_state_rejected(
        self, store: EntryStore, controller: OptimisticMutationController
    ) -> None:
        result = await controller.submit("j1", EntryDraft(content="Hello"))

        assert result.error is not None
        assert result.error.field == "mental_state"
        assert store.get_snapshot("j1").entries == ()

    @pytest.mark.asyncio
    async def test_start_with_invalid_draft_returns_no_task(
        self, controller: OptimisticMutationController
    ) -> None:
        mutation, task = controller.start("j1", calm(""))

        assert task is None
        assert mutation.state is MutationState.FAILED

    @pytest.mark.asyncio
    async def test_cancelled_create_removes_entry(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test cancelling the remote half leaves no tentative entry behind."""
        gateway.hold("create_entry")
        mutation, task = controller.start("j1", calm())
        await settle()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert store.get_snapshot("j1").entries == ()
        assert mutation.state is MutationState.FAILED
        assert isinstance(mutation.error, NetworkError)

    @pytest.mark.asyncio
    async def test_unexpected_error_removes_entry_and_propagates(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a non-gateway exception is re-raised after cleanup."""
        gateway.fail_next("create_entry", RuntimeError("driver bug"))

        with pytest.raises(RuntimeError, match="driver bug"):
            await controller.submit("j1", calm())

        assert store.get_snapshot("j1").entries == ()
        (mutation,) = controller.mutations()
        assert mutation.state is MutationState.FAILED
        assert isinstance(mutation.error, GatewayError)

    @pytest.mark.asyncio
    async def test_concurrent_creates(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test overlapping creates each settle into exactly one entry."""
        gateway.hold("create_entry")
        first, first_task = controller.start("j1", calm("one"))
        second, second_task = controller.start("j1", calm("two"))

        assert store.get_snapshot("j1").ids == [second.id, first.id]

        gateway.release("create_entry")
        results = await asyncio.gather(first_task, second_task)

        ids = store.get_snapshot("j1").ids
        assert sorted(ids) == sorted(r.entry.id for r in results)
        assert not any(is_tentative_id(i) for i in ids)

    @pytest.mark.asyncio
    async def test_confirmation_survives_racing_reload(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a reload during a create keeps the tentative entry, then the confirmed one."""
        gateway.seed("j1", 2)
        gateway.hold("create_entry")
        mutation, task = controller.start("j1", calm())

        await store.force_reload("j1")
        assert mutation.id in store.get_snapshot("j1").ids

        gateway.release("create_entry")
        result = await task

        ids = store.get_snapshot("j1").ids
        assert ids[0] == result.entry.id
        assert len(ids) == 3

    @pytest.mark.asyncio
    async def test_clear_settled(
        self, gateway: InMemoryGateway, controller: OptimisticMutationController
    ) -> None:
        await controller.submit("j1", calm())
        gateway.hold("create_entry")
        controller.start("j1", calm("later"))

        assert controller.clear_settled() == 1
        assert len(controller.pending()) == 1
        gateway.release("create_entry")
        await settle()

    @pytest.mark.asyncio
    async def test_settled_history_is_bounded(
        self, store: EntryStore, gateway: InMemoryGateway, author: Profile
    ) -> None:
        """Test only the newest settled mutations are kept, pending ones never dropped."""
        controller = OptimisticMutationController(
            store, gateway, author, sleep=instant, history_limit=5
        )
        results = [await controller.submit("j1", calm(f"n{i}")) for i in range(20)]
        gateway.hold("create_entry")
        held, task = controller.start("j1", calm("held"))

        tracked = controller.mutations()
        assert len(tracked) == 6
        assert [m.id for m in tracked[:5]] == [r.mutation.id for r in results[-5:]]
        assert controller.pending() == [held]

        gateway.release("create_entry")
        await task
        assert len(controller.mutations()) == 5
        assert controller.mutations()[-1] is held

    @pytest.mark.asyncio
    async def test_confirmation_after_discard_is_not_applied(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a create landing after the space was left settles without recreating it."""
        gateway.hold("create_entry")
        mutation, task = controller.start("j1", calm())

        store.discard("j1")
        gateway.release("create_entry")
        result = await task

        assert result.ok
        assert mutation.state is MutationState.CONFIRMED
        assert store.has_space("j1") is False
        assert store.spaces() == []

    @pytest.mark.asyncio
    async def test_failure_after_discard_is_not_applied(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        gateway.hold("create_entry")
        gateway.fail_next("create_entry", AuthenticationError("expired"))
        _, task = controller.start("j1", calm())

        store.discard("j1")
        gateway.release("create_entry")
        result = await task

        assert result.ok is False
        assert store.spaces() == []


# ==============================================================================
# Delete
# ==============================================================================


class TestDelete:
    """Tests for optimistic deletes."""

    @pytest.mark.asyncio
    async def test_delete_removes_entry(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        gateway.seed("j1", 3)
        await store.load("j1")

        result = await controller.delete("j1", "e2")

        assert result.ok is True
        assert store.get_snapshot("j1").ids == ["e3", "e1"]
        assert [e.id for e in gateway.stored("j1")] == ["e3", "e1"]

    @pytest.mark.asyncio
    async def test_failed_delete_restores_entry(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a rejected delete puts the entry back where it was."""
        gateway.seed("j1", 3)
        await store.load("j1")
        gateway.fail_next("delete_entry", AuthenticationError("forbidden"))

        result = await controller.delete("j1", "e2")

        assert result.ok is False
        assert isinstance(result.error, AuthenticationError)
        assert store.get_snapshot("j1").ids == ["e3", "e2", "e1"]
        assert "e2" not in store.state("j1").tombstones

    @pytest.mark.asyncio
    async def test_reload_during_delete_does_not_resurrect(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a load that lands mid-delete keeps the entry hidden."""
        gateway.seed("j1", 3)
        await store.load("j1")
        gateway.hold("delete_entry")

        task = asyncio.create_task(controller.delete("j1", "e2"))
        await settle()
        await store.force_reload("j1")
        assert "e2" not in store.get_snapshot("j1").ids

        gateway.release("delete_entry")
        assert (await task).ok
        assert "e2" not in store.get_snapshot("j1").ids

    @pytest.mark.asyncio
    async def test_delete_tentative_entry_rejected(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test pending entries cannot be deleted."""
        gateway.hold("create_entry")
        mutation, task = controller.start("j1", calm())

        result = await controller.delete("j1", mutation.id)

        assert result.ok is False
        assert isinstance(result.error, ValidationError)
        assert mutation.id in store.get_snapshot("j1").ids
        gateway.release("create_entry")
        await task

    @pytest.mark.asyncio
    async def test_failed_delete_after_discard_restores_nothing(
        self,
        store: EntryStore,
        gateway: InMemoryGateway,
        controller: OptimisticMutationController,
    ) -> None:
        """Test a rejected delete landing after the space was left does not recreate it."""
        gateway.seed("j1", 3)
        await store.load("j1")
        gateway.hold("delete_entry")
        gateway.fail_next("delete_entry", AuthenticationError("forbidden"))

        task = asyncio.create_task(controller.delete("j1", "e2"))
        await settle()
        store.discard("j1")
        gateway.release("delete_entry")

        assert (await task).ok is False
        assert store.spaces() == []
