from __future__ import annotations

import pytest

from resourceset.adapters.events import RecordingEventRecorder
from resourceset.adapters.memory import MemoryClientFactory, MemoryObjectStore
from tests.support.resourcesets import ReconcileHarness


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def clients(store: MemoryObjectStore) -> MemoryClientFactory:
    return MemoryClientFactory(store)


@pytest.fixture
def recorder() -> RecordingEventRecorder:
    return RecordingEventRecorder()


@pytest.fixture
def harness(store: MemoryObjectStore, recorder: RecordingEventRecorder) -> ReconcileHarness:
    return ReconcileHarness(store, recorder)
