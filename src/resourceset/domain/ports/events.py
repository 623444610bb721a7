"""Port for user-facing Kubernetes events."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


class EventType(StrEnum):
    NORMAL = "Normal"
    WARNING = "Warning"


class EventTarget(Protocol):
    api_version: str
    kind: str
    name: str
    namespace: str
    uid: str


@runtime_checkable
class EventRecorder(Protocol):
    """Fire-and-forget sink; implementations log failures instead of raising."""

    def event(
        self,
        obj: EventTarget,
        event_type: EventType,
        reason: str,
        message: str,
        *,
        annotations: Mapping[str, str] | None = None,
    ) -> None: ...
