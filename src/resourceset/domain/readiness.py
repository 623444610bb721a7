"""Generic readiness computation for arbitrary Kubernetes objects.

The rules follow the kstatus conventions: objects that publish ``Ready`` /
``Reconciling`` / ``Stalled`` conditions are judged by them, a handful of core
kinds are judged by their well-known status fields, and anything else is
considered current as soon as the controller observed its latest generation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from resourceset.domain.model.objects import get_nested, gvk_of

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


class Status(StrEnum):
    CURRENT = "Current"
    IN_PROGRESS = "InProgress"
    FAILED = "Failed"
    TERMINATING = "Terminating"
    UNKNOWN = "Unknown"
    NOT_FOUND = "NotFound"


@dataclass(frozen=True, slots=True)
class StatusResult:
    status: Status
    message: str = ""

    @property
    def is_current(self) -> bool:
        return self.status is Status.CURRENT


def compute_status(obj: Mapping[str, Any]) -> StatusResult:
    if get_nested(obj, "metadata", "deletionTimestamp"):
        return StatusResult(Status.TERMINATING, "Resource scheduled for deletion")

    generation = get_nested(obj, "metadata", "generation")
    observed = get_nested(obj, "status", "observedGeneration")
    if generation is not None and observed is not None and observed != generation:
        return StatusResult(
            Status.IN_PROGRESS, f"Generation {generation} not yet observed, got {observed}"
        )

    gvk = gvk_of(obj)
    handler = _KIND_HANDLERS.get((gvk.group, gvk.kind))
    if handler is not None:
        return handler(obj)
    return _generic_status(obj)


def condition(obj: Mapping[str, Any], condition_type: str) -> Mapping[str, Any] | None:
    conditions = get_nested(obj, "status", "conditions", default=None) or []
    for item in conditions:
        if isinstance(item, dict) and item.get("type") == condition_type:
            return item
    return None


def _generic_status(obj: Mapping[str, Any]) -> StatusResult:
    stalled = condition(obj, "Stalled")
    if stalled is not None and stalled.get("status") == "True":
        return StatusResult(Status.FAILED, str(stalled.get("message", "")))

    reconciling = condition(obj, "Reconciling")
    if reconciling is not None and reconciling.get("status") == "True":
        return StatusResult(Status.IN_PROGRESS, str(reconciling.get("message", "")))

    ready = condition(obj, "Ready")
    if ready is not None:
        if ready.get("status") == "True":
            return StatusResult(Status.CURRENT, str(ready.get("message", "")))
        return StatusResult(Status.IN_PROGRESS, str(ready.get("message", "")))

    return StatusResult(Status.CURRENT, "Resource is current")


def _deployment_status(obj: Mapping[str, Any]) -> StatusResult:
    progressing = condition(obj, "Progressing")
    if progressing is not None and progressing.get("reason") == "ProgressDeadlineExceeded":
        return StatusResult(Status.FAILED, str(progressing.get("message", "")))
    return _replica_status(obj, ("updatedReplicas", "readyReplicas", "availableReplicas"))


def _replica_status(
    obj: Mapping[str, Any], fields: tuple[str, ...] = ("updatedReplicas", "readyReplicas")
) -> StatusResult:
    desired = get_nested(obj, "spec", "replicas", default=1)
    status = get_nested(obj, "status", default=None) or {}
    for field_name in fields:
        value = status.get(field_name, 0) or 0
        if value < desired:
            return StatusResult(Status.IN_PROGRESS, f"{field_name}: {value}/{desired}")
    return StatusResult(Status.CURRENT, f"Replicas: {desired}/{desired}")


def _replica_set_status(obj: Mapping[str, Any]) -> StatusResult:
    failure = condition(obj, "ReplicaFailure")
    if failure is not None and failure.get("status") == "True":
        return StatusResult(Status.IN_PROGRESS, f"Replica Failure condition. {failure.get('message', '')}".strip())
    result = _replica_status(obj, ("fullyLabeledReplicas", "availableReplicas", "readyReplicas"))
    if not result.is_current:
        return result
    desired = get_nested(obj, "spec", "replicas", default=1)
    replicas = get_nested(obj, "status", "replicas", default=0) or 0
    if replicas > desired:
        return StatusResult(Status.IN_PROGRESS, f"Pending termination: {replicas - desired}")
    return result


def _daemon_set_status(obj: Mapping[str, Any]) -> StatusResult:
    status = get_nested(obj, "status", default=None) or {}
    desired = status.get("desiredNumberScheduled")
    if desired is None:
        return StatusResult(Status.IN_PROGRESS, "Missing .status.desiredNumberScheduled")
    for field_name in ("updatedNumberScheduled", "numberAvailable", "numberReady"):
        value = status.get(field_name, 0) or 0
        if value < desired:
            return StatusResult(Status.IN_PROGRESS, f"{field_name}: {value}/{desired}")
    return StatusResult(Status.CURRENT, f"All replicas scheduled as expected. Replicas: {desired}")


def _pod_status(obj: Mapping[str, Any]) -> StatusResult:
    phase = get_nested(obj, "status", "phase", default="")
    if phase == "Succeeded":
        return StatusResult(Status.CURRENT, "Pod has completed successfully")
    if phase == "Failed":
        return StatusResult(Status.FAILED, "Pod has completed, but not successfully")
    ready = condition(obj, "Ready")
    if phase == "Running" and ready is not None and ready.get("status") == "True":
        return StatusResult(Status.CURRENT, "Pod is Ready")
    return StatusResult(Status.IN_PROGRESS, f"Pod phase: {phase or 'Pending'}")


def _job_status(obj: Mapping[str, Any]) -> StatusResult:
    failed = condition(obj, "Failed")
    if failed is not None and failed.get("status") == "True":
        return StatusResult(Status.FAILED, str(failed.get("message", "Job failed")))
    complete = condition(obj, "Complete")
    if complete is not None and complete.get("status") == "True":
        return StatusResult(Status.CURRENT, "Job Completed")
    return StatusResult(Status.CURRENT, "Job in progress")


def _phase_status(expected: str) -> Callable[[Mapping[str, Any]], StatusResult]:
    def handler(obj: Mapping[str, Any]) -> StatusResult:
        phase = get_nested(obj, "status", "phase", default="")
        if phase == expected:
            return StatusResult(Status.CURRENT, f"Phase: {phase}")
        return StatusResult(Status.IN_PROGRESS, f"Phase: {phase or 'Unknown'}")

    return handler


def _crd_status(obj: Mapping[str, Any]) -> StatusResult:
    established = condition(obj, "Established")
    if established is None:
        return StatusResult(Status.IN_PROGRESS, "Missing Established condition")
    if established.get("status") == "True":
        return StatusResult(Status.CURRENT, "CRD is established")
    names = condition(obj, "NamesAccepted")
    if names is not None and names.get("status") == "False":
        return StatusResult(Status.FAILED, str(names.get("message", "")))
    return StatusResult(Status.IN_PROGRESS, "CRD is not established")


_KIND_HANDLERS: dict[tuple[str, str], Callable[[Mapping[str, Any]], StatusResult]] = {
    ("apps", "Deployment"): _deployment_status,
    ("apps", "StatefulSet"): _replica_status,
    ("apps", "ReplicaSet"): _replica_set_status,
    ("apps", "DaemonSet"): _daemon_set_status,
    ("", "Pod"): _pod_status,
    ("batch", "Job"): _job_status,
    ("", "PersistentVolumeClaim"): _phase_status("Bound"),
    ("apiextensions.k8s.io", "CustomResourceDefinition"): _crd_status,
}
