"""Global pytest configuration and fixtures.

Provides a shared in-memory store and a controllable clock so turn taking
and timeouts can be exercised deterministically.
"""

from __future__ import annotations

import pytest

from dealrota.store.memory import InMemoryDocumentStore


class FakeClock:
    """Callable clock returning epoch seconds that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "e2e: multi-worker scenarios over a shared in-memory store"
    )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Fresh shared store."""
    return InMemoryDocumentStore()


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at a fixed instant."""
    return FakeClock()
