"""Work queue and controller loop."""

from __future__ import annotations

from .controller import Controller, ObservedState
from .workqueue import WorkQueue

__all__ = ["Controller", "ObservedState", "WorkQueue"]
