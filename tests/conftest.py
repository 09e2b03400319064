"""
Shared fixtures: an in-memory store and a fully wired studio.
"""

import pytest

from studiobook.adapters.memory_store import InMemoryDocumentStore
from studiobook.domain.slot_grid import generate_slots
from studiobook.services.studio import Studio


@pytest.fixture
def grid():
    """Default studio grid: 09:00-20:00 in 30-minute slots."""
    return generate_slots(9 * 60, 20 * 60, 30)


@pytest.fixture
def small_grid():
    """09:00-10:00 in 30-minute slots (09:00, 09:30)."""
    return generate_slots(9 * 60, 10 * 60, 30)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def studio(store, grid):
    return Studio.build(store, grid, retry_base_delay=0)


@pytest.fixture
def small_studio(store, small_grid):
    return Studio.build(store, small_grid, retry_base_delay=0)
