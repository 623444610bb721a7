"""Helpers for working with unstructured Kubernetes objects.

Objects travel through the engine as plain ``dict`` payloads, exactly as they
are stored by the API server. ``ObjMetadata`` is the hashable identity used by
inventories, change sets and the resource manager.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

type Unstructured = dict[str, Any]

_FIELD_SEPARATOR = "_"
# RBAC names may contain colons, which are not allowed in inventory ids.
_COLON_TRANSLATION = "__"


def split_api_version(api_version: str) -> tuple[str, str]:
    """Split ``group/version`` into its parts; the core group is empty."""

    if "/" in api_version:
        group, version = api_version.split("/", 1)
        return group, version
    return "", api_version


def join_api_version(group: str, version: str) -> str:
    return f"{group}/{version}" if group else version


@dataclass(frozen=True, slots=True, order=True)
class GroupVersionKind:
    group: str
    version: str
    kind: str

    @property
    def api_version(self) -> str:
        return join_api_version(self.group, self.version)

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> GroupVersionKind:
        group, version = split_api_version(api_version)
        return cls(group=group, version=version, kind=kind)

    def __str__(self) -> str:
        return f"{self.api_version}/{self.kind}"


@dataclass(frozen=True, slots=True, order=True)
class ObjMetadata:
    """Identity of an object independent of its API version."""

    namespace: str
    name: str
    group: str
    kind: str

    @property
    def id(self) -> str:
        name = self.name.replace(":", _COLON_TRANSLATION)
        return _FIELD_SEPARATOR.join((self.namespace, name, self.group, self.kind))

    @classmethod
    def parse(cls, value: str) -> ObjMetadata:
        """Parse an inventory id of the form ``namespace_name_group_kind``."""

        parts = value.split(_FIELD_SEPARATOR)
        if len(parts) < 4:
            raise ValueError(f"unexpected number of fields in object id '{value}'")
        namespace = parts[0]
        kind = parts[-1]
        group = parts[-2]
        name = _FIELD_SEPARATOR.join(parts[1:-2]).replace(_COLON_TRANSLATION, ":")
        if not name or not kind:
            raise ValueError(f"object id '{value}' is missing a name or kind")
        return cls(namespace=namespace, name=name, group=group, kind=kind)

    @classmethod
    def from_object(cls, obj: Mapping[str, Any]) -> ObjMetadata:
        group, _ = split_api_version(api_version_of(obj))
        return cls(
            namespace=namespace_of(obj),
            name=name_of(obj),
            group=group,
            kind=kind_of(obj),
        )

    def __str__(self) -> str:
        return self.id


def get_nested(obj: Mapping[str, Any], *path: str, default: Any = None) -> Any:
    current: Any = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def set_nested(obj: Unstructured, value: Any, *path: str) -> None:
    current = obj
    for key in path[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[path[-1]] = value


def api_version_of(obj: Mapping[str, Any]) -> str:
    return str(obj.get("apiVersion") or "")


def kind_of(obj: Mapping[str, Any]) -> str:
    return str(obj.get("kind") or "")


def name_of(obj: Mapping[str, Any]) -> str:
    return str(get_nested(obj, "metadata", "name", default="") or "")


def namespace_of(obj: Mapping[str, Any]) -> str:
    return str(get_nested(obj, "metadata", "namespace", default="") or "")


def labels_of(obj: Mapping[str, Any]) -> dict[str, str]:
    return dict(get_nested(obj, "metadata", "labels", default=None) or {})


def annotations_of(obj: Mapping[str, Any]) -> dict[str, str]:
    return dict(get_nested(obj, "metadata", "annotations", default=None) or {})


def set_labels(obj: Unstructured, labels: Mapping[str, str]) -> None:
    if labels:
        set_nested(obj, dict(labels), "metadata", "labels")
    else:
        obj.get("metadata", {}).pop("labels", None)


def set_annotations(obj: Unstructured, annotations: Mapping[str, str]) -> None:
    if annotations:
        set_nested(obj, dict(annotations), "metadata", "annotations")
    else:
        obj.get("metadata", {}).pop("annotations", None)


def gvk_of(obj: Mapping[str, Any]) -> GroupVersionKind:
    return GroupVersionKind.from_api_version(api_version_of(obj), kind_of(obj))


def skeleton(api_version: str, kind: str, namespace: str, name: str) -> Unstructured:
    """Return a minimal object carrying only its identity."""

    metadata: dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata}


def fmt_object(obj: Mapping[str, Any]) -> str:
    """Human-readable ``Kind/namespace/name`` reference."""

    return fmt_metadata(ObjMetadata.from_object(obj))


def fmt_metadata(meta: ObjMetadata) -> str:
    if meta.namespace:
        return f"{meta.kind}/{meta.namespace}/{meta.name}"
    return f"{meta.kind}/{meta.name}"


def deep_copy_all(objects: Iterable[Unstructured]) -> list[Unstructured]:
    return [copy.deepcopy(obj) for obj in objects]


def sort_key(obj: Mapping[str, Any]) -> tuple[str, str, str, str]:
    meta = ObjMetadata.from_object(obj)
    return (meta.kind, meta.namespace, meta.name, meta.group)
