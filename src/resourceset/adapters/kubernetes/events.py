"""Event recorder posting ``core/v1`` Events."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from resourceset.domain.ports.store import StoreError

from .client import JSON

if TYPE_CHECKING:
    from collections.abc import Mapping

    from resourceset.domain.ports.events import EventTarget, EventType

    from .client import KubernetesApi, LoopRunner

log = getLogger(__name__)

MAX_MESSAGE_LENGTH = 1024


class KubernetesEventRecorder:
    def __init__(self, api: KubernetesApi, runner: LoopRunner, *, component: str) -> None:
        self._api = api
        self._runner = runner
        self.component = component

    def event(
        self,
        obj: EventTarget,
        event_type: EventType,
        reason: str,
        message: str,
        *,
        annotations: Mapping[str, str] | None = None,
    ) -> None:
        body = build_event(obj, event_type, reason, message, self.component, annotations)
        path = f"/api/v1/namespaces/{obj.namespace or 'default'}/events"
        try:
            self._runner.run(
                self._api.request("POST", path, content=json.dumps(body), content_type=JSON)
            )
        except StoreError as exc:
            log.warning("Failed to record event %s on %s/%s: %s", reason, obj.namespace, obj.name, exc)


def build_event(
    obj: EventTarget,
    event_type: EventType,
    reason: str,
    message: str,
    component: str,
    annotations: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    now = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    if len(message) > MAX_MESSAGE_LENGTH:
        message = message[: MAX_MESSAGE_LENGTH - 3] + "..."
    metadata: dict[str, Any] = {"generateName": f"{obj.name}.", "namespace": obj.namespace or "default"}
    if annotations:
        metadata["annotations"] = dict(annotations)
    return {
        "apiVersion": "v1",
        "kind": "Event",
        "metadata": metadata,
        "involvedObject": {
            "apiVersion": obj.api_version,
            "kind": obj.kind,
            "name": obj.name,
            "namespace": obj.namespace,
            "uid": obj.uid,
        },
        "reason": reason,
        "message": message,
        "type": str(event_type),
        "source": {"component": component},
        "reportingComponent": component,
        "firstTimestamp": now,
        "lastTimestamp": now,
        "count": 1,
    }
