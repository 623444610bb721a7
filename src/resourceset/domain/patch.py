"""Serialized JSON merge patching of ResourceSet finalizers and status."""

from __future__ import annotations

import copy
from logging import getLogger
from typing import TYPE_CHECKING, Any

from resourceset.domain.model.objects import get_nested

if TYPE_CHECKING:
    from collections.abc import Mapping

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.resourceset import ResourceSet
    from resourceset.domain.ports.codec import ResourceSetCodec
    from resourceset.domain.ports.store import ObjectStore


log = getLogger(__name__)


def create_merge_patch(before: Mapping[str, Any], after: Mapping[str, Any]) -> dict[str, Any]:
    """Return the RFC 7386 merge patch turning ``before`` into ``after``."""

    patch: dict[str, Any] = {}
    for key in before:
        if key not in after:
            patch[key] = None
    for key, value in after.items():
        if key not in before:
            patch[key] = copy.deepcopy(value)
            continue
        previous = before[key]
        if isinstance(previous, dict) and isinstance(value, dict):
            nested = create_merge_patch(previous, value)
            if nested:
                patch[key] = nested
        elif previous != value:
            patch[key] = copy.deepcopy(value)
    return patch


def apply_merge_patch(target: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``target`` with the RFC 7386 merge ``patch`` applied; ``None`` deletes keys."""

    result = copy.deepcopy(dict(target))
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = apply_merge_patch(result[key], value)
        elif isinstance(value, dict):
            result[key] = apply_merge_patch({}, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class SerialPatcher:
    """Patches an object against the last state it successfully persisted.

    Only the fields this reconciler owns (finalizers and status) are diffed, so
    edits made concurrently by other writers to the rest of the object survive.
    """

    def __init__(self, store: ObjectStore, codec: ResourceSetCodec, resource_set: ResourceSet) -> None:
        self._store = store
        self._codec = codec
        self._snapshot = codec.encode(resource_set)

    def patch(self, resource_set: ResourceSet) -> None:
        current = self._codec.encode(resource_set)

        before_finalizers = get_nested(self._snapshot, "metadata", "finalizers", default=None) or []
        after_finalizers = get_nested(current, "metadata", "finalizers", default=None) or []
        if before_finalizers != after_finalizers:
            self._store.patch(
                resource_set.api_version,
                resource_set.kind,
                resource_set.namespace,
                resource_set.name,
                {"metadata": {"finalizers": after_finalizers or None}},
            )
            self._snapshot.setdefault("metadata", {})["finalizers"] = list(after_finalizers)

        status_patch = create_merge_patch(
            self._snapshot.get("status") or {}, current.get("status") or {}
        )
        if status_patch:
            self._store.patch(
                resource_set.api_version,
                resource_set.kind,
                resource_set.namespace,
                resource_set.name,
                {"status": status_patch},
                subresource="status",
            )
            self._snapshot["status"] = copy.deepcopy(current.get("status") or {})
        log.debug("Patched %s/%s", resource_set.namespace, resource_set.name)

    @property
    def snapshot(self) -> Unstructured:
        return copy.deepcopy(self._snapshot)
