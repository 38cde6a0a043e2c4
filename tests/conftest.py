"""
Pytest configuration and shared fixtures.

Provides an in-memory gateway, a cache gate driven by a manual clock, and
a store and mutation controller wired to them.
"""

from datetime import datetime, timezone

import pytest

from tradefeed.core.cache_gate import CacheGate
from tradefeed.core.entries.models import Profile
from tradefeed.core.entries.store import EntryStore
from tradefeed.core.gateway.memory import InMemoryGateway
from tradefeed.core.mutations.controller import OptimisticMutationController
from tradefeed.core.retry import RetryConfig

# Server time for created entries; later than anything seeded
SERVER_NOW = datetime(2026, 3, 3, 14, 30, tzinfo=timezone.utc)


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


async def no_sleep(_delay: float) -> None:
    """Backoff sleep that returns immediately."""


# ==============================================================================
# Engine Fixtures
# ==============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def gate(clock: ManualClock) -> CacheGate:
    return CacheGate(clock=clock)


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway(clock=lambda: SERVER_NOW)


@pytest.fixture
def author() -> Profile:
    return Profile(id="u1", display_name="alice")


@pytest.fixture
def store(gateway: InMemoryGateway, gate: CacheGate) -> EntryStore:
    return EntryStore(gateway, gate, page_size=20, entries_ttl_ms=500)


@pytest.fixture
def controller(
    store: EntryStore, gateway: InMemoryGateway, author: Profile
) -> OptimisticMutationController:
    return OptimisticMutationController(
        store,
        gateway,
        author,
        retry=RetryConfig(max_attempts=3, base_delay=0.01, jitter=False),
        sleep=no_sleep,
    )
