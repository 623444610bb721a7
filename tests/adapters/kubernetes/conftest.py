from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from resourceset.adapters.kubernetes import LoopRunner
from tests.support.kubernetes import FakeServer

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def runner() -> Iterator[LoopRunner]:
    loop_runner = LoopRunner(name="test-kubernetes-api")
    yield loop_runner
    loop_runner.close()


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()
