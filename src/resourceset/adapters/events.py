"""Event recorders that keep events in process."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from resourceset.domain.ports.events import EventType

if TYPE_CHECKING:
    from collections.abc import Mapping

    from resourceset.domain.ports.events import EventTarget

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class RecordedEvent:
    involved: str
    event_type: EventType
    reason: str
    message: str
    timestamp: datetime
    annotations: dict[str, str] = field(default_factory=dict["str", "str"])


class RecordingEventRecorder:
    """Keeps every event in memory, in emission order."""

    def __init__(self) -> None:
        self._events: list[RecordedEvent] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> list[RecordedEvent]:
        with self._lock:
            return list(self._events)

    def reasons(self) -> list[str]:
        return [event.reason for event in self.events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def event(
        self,
        obj: EventTarget,
        event_type: EventType,
        reason: str,
        message: str,
        *,
        annotations: Mapping[str, str] | None = None,
    ) -> None:
        recorded = RecordedEvent(
            involved=f"{obj.kind}/{obj.namespace}/{obj.name}",
            event_type=event_type,
            reason=reason,
            message=message,
            timestamp=datetime.now(UTC),
            annotations=dict(annotations or {}),
        )
        with self._lock:
            self._events.append(recorded)
        log.debug("Event %s %s on %s: %s", event_type, reason, recorded.involved, message)


class LoggingEventRecorder:
    """Writes events to the log only; used when no API server is available."""

    def event(
        self,
        obj: EventTarget,
        event_type: EventType,
        reason: str,
        message: str,
        *,
        annotations: Mapping[str, str] | None = None,  # noqa: ARG002
    ) -> None:
        if event_type is EventType.WARNING:
            log.warning("%s/%s/%s %s: %s", obj.kind, obj.namespace, obj.name, reason, message)
        else:
            log.info("%s/%s/%s %s: %s", obj.kind, obj.namespace, obj.name, reason, message)
