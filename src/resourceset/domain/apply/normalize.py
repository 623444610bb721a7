"""Structural defaulting and metadata stamping of desired objects."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from resourceset.domain.model.objects import (
    annotations_of,
    get_nested,
    gvk_of,
    labels_of,
    set_annotations,
    set_labels,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from resourceset.domain.model.objects import Unstructured

_POD_SPEC_PATHS: dict[tuple[str, str], tuple[str, ...]] = {
    ("", "Pod"): ("spec",),
    ("apps", "Deployment"): ("spec", "template", "spec"),
    ("apps", "StatefulSet"): ("spec", "template", "spec"),
    ("apps", "DaemonSet"): ("spec", "template", "spec"),
    ("apps", "ReplicaSet"): ("spec", "template", "spec"),
    ("batch", "Job"): ("spec", "template", "spec"),
    ("batch", "CronJob"): ("spec", "jobTemplate", "spec", "template", "spec"),
}


def normalize_objects(objects: Iterable[Unstructured]) -> None:
    """Normalize objects in place so they match what the API server would store."""

    for obj in objects:
        normalize_object(obj)


def normalize_object(obj: Unstructured) -> None:
    obj.pop("status", None)

    metadata = obj.get("metadata")
    if isinstance(metadata, dict):
        for key in [key for key, value in metadata.items() if value is None]:
            del metadata[key]

    gvk = gvk_of(obj)
    if (gvk.group, gvk.kind) == ("", "Service"):
        _default_protocols(get_nested(obj, "spec", "ports", default=None))
        return

    path = _POD_SPEC_PATHS.get((gvk.group, gvk.kind))
    if path is None:
        return
    pod_spec = get_nested(obj, *path, default=None)
    if not isinstance(pod_spec, dict):
        return
    for key in ("initContainers", "containers", "ephemeralContainers"):
        for container in pod_spec.get(key) or []:
            if isinstance(container, dict):
                _default_protocols(container.get("ports"))


def _default_protocols(ports: Any) -> None:
    if not isinstance(ports, list):
        return
    for port in ports:
        if isinstance(port, dict) and not port.get("protocol"):
            port["protocol"] = "TCP"


def set_common_metadata(
    objects: Iterable[Unstructured],
    labels: Mapping[str, str] | None,
    annotations: Mapping[str, str] | None,
) -> None:
    for obj in objects:
        if labels:
            set_labels(obj, {**labels_of(obj), **labels})
        if annotations:
            set_annotations(obj, {**annotations_of(obj), **annotations})


def matches_any(obj: Mapping[str, Any], selector: Mapping[str, str]) -> bool:
    """True when any key/value of ``selector`` is present in the labels or annotations."""

    labels = labels_of(obj)
    annotations = annotations_of(obj)
    for key, value in selector.items():
        if labels.get(key) == value or annotations.get(key) == value:
            return True
    return False


def matches_all_labels(obj: Mapping[str, Any], selector: Mapping[str, str]) -> bool:
    labels = labels_of(obj)
    return all(labels.get(key) == value for key, value in selector.items())
