"""In-memory object store used by the offline ``build`` command and the test suite.

The store mimics the parts of the API server the reconciler relies on:
server-side apply outcomes (created / configured / unchanged), generation
bumps on spec changes, immutable fields, finalizer-blocked deletion, and
service account based impersonation.
"""

from __future__ import annotations

import copy
import itertools
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from resourceset.domain.apply.changeset import Action
from resourceset.domain.model.objects import (
    ObjMetadata,
    fmt_metadata,
    get_nested,
    labels_of,
    set_nested,
    split_api_version,
)
from resourceset.domain.patch import apply_merge_patch
from resourceset.domain.ports.store import (
    AppliedObject,
    ImmutableFieldError,
    ImpersonationError,
    NotFoundError,
    StoreError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.selectors import LabelSelector


log = getLogger(__name__)

# Metadata fields owned by the server and never taken from an applied payload.
_SERVER_METADATA = (
    "uid",
    "resourceVersion",
    "generation",
    "creationTimestamp",
    "deletionTimestamp",
    "managedFields",
)

DEFAULT_IMMUTABLE_FIELDS: dict[str, tuple[tuple[str, ...], ...]] = {
    "Deployment": (("spec", "selector"),),
    "StatefulSet": (("spec", "selector"), ("spec", "serviceName")),
    "DaemonSet": (("spec", "selector"),),
    "Job": (("spec", "selector"), ("spec", "template")),
    "Service": (("spec", "clusterIP"),),
    "Secret": (("type",),),
}


@dataclass(slots=True)
class _Failure:
    operation: str
    ref: str
    error: StoreError
    remaining: int | None = None


@dataclass(slots=True)
class MemoryObjectStore:
    """Thread-safe dictionary of objects keyed by ``ObjMetadata``."""

    immutable_fields: dict[str, tuple[tuple[str, ...], ...]] = field(
        default_factory=lambda: dict(DEFAULT_IMMUTABLE_FIELDS)
    )
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(UTC))
    _objects: dict[ObjMetadata, Unstructured] = field(
        default_factory=dict["ObjMetadata", "Unstructured"]
    )
    _versions: itertools.count[int] = field(default_factory=lambda: itertools.count(1))
    _failures: list[_Failure] = field(default_factory=list["_Failure"])
    _lock: threading.RLock = field(default_factory=threading.RLock)

    # Seeding and inspection helpers ---------------------------------------------------

    def add(self, *objects: Unstructured) -> None:
        """Store ``objects`` as-is (plus server metadata) without any field manager."""

        with self._lock:
            for obj in objects:
                stored = copy.deepcopy(obj)
                self._stamp_new(stored)
                self._objects[ObjMetadata.from_object(stored)] = stored

    def objects(self) -> list[Unstructured]:
        with self._lock:
            return [copy.deepcopy(obj) for obj in self._objects.values()]

    def exists(self, api_version: str, kind: str, namespace: str, name: str) -> bool:
        with self._lock:
            return self._key(api_version, kind, namespace, name) in self._objects

    def fail(
        self,
        operation: str,
        kind: str,
        namespace: str,
        name: str,
        error: StoreError,
        *,
        times: int | None = None,
    ) -> None:
        """Make ``operation`` (get/list/apply/delete/patch) on the object raise ``error``."""

        ref = fmt_metadata(ObjMetadata(namespace=namespace, name=name, group="", kind=kind))
        with self._lock:
            self._failures.append(_Failure(operation, ref, error, times))

    def clear_failures(self) -> None:
        with self._lock:
            self._failures.clear()

    def set_status(
        self, api_version: str, kind: str, namespace: str, name: str, status: Mapping[str, Any]
    ) -> None:
        with self._lock:
            stored = self._require(api_version, kind, namespace, name)
            stored["status"] = copy.deepcopy(dict(status))

    # ObjectStore ----------------------------------------------------------------------

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Unstructured:
        with self._lock:
            self._check_failure("get", kind, namespace, name)
            return copy.deepcopy(self._require(api_version, kind, namespace, name))

    def list(
        self,
        api_version: str,
        kind: str,
        *,
        namespace: str = "",
        selector: LabelSelector | None = None,
    ) -> list[Unstructured]:
        group, _ = split_api_version(api_version)
        with self._lock:
            self._check_failure("list", kind, namespace, "*")
            items = [
                copy.deepcopy(obj)
                for key, obj in sorted(self._objects.items())
                if key.group == group
                and key.kind == kind
                and (not namespace or key.namespace == namespace)
                and (selector is None or selector.matches(labels_of(obj)))
            ]
        return items

    def apply(self, obj: Unstructured, *, field_manager: str, force: bool = True) -> AppliedObject:
        desired = copy.deepcopy(obj)
        meta = ObjMetadata.from_object(desired)
        with self._lock:
            self._check_failure("apply", meta.kind, meta.namespace, meta.name)
            existing = self._objects.get(meta)
            if existing is None:
                self._stamp_new(desired)
                self._claim(desired, field_manager)
                self._objects[meta] = desired
                log.debug("Created %s", fmt_metadata(meta))
                return AppliedObject(object=copy.deepcopy(desired), action=Action.CREATED)

            self._check_immutable(meta, existing, desired)
            merged = self._merge(existing, desired)
            self._claim(merged, field_manager)
            if _content(merged) == _content(existing):
                return AppliedObject(object=copy.deepcopy(existing), action=Action.UNCHANGED)

            if _spec(merged) != _spec(existing):
                merged["metadata"]["generation"] = int(existing["metadata"].get("generation", 1)) + 1
            merged["metadata"]["resourceVersion"] = str(next(self._versions))
            self._objects[meta] = merged
            log.debug("Configured %s", fmt_metadata(meta))
            return AppliedObject(object=copy.deepcopy(merged), action=Action.CONFIGURED)

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        with self._lock:
            self._check_failure("delete", kind, namespace, name)
            key = self._key(api_version, kind, namespace, name)
            stored = self._require(api_version, kind, namespace, name)
            if get_nested(stored, "metadata", "finalizers", default=None):
                stored["metadata"].setdefault("deletionTimestamp", _timestamp(self.clock()))
                return
            del self._objects[key]

    def patch(
        self,
        api_version: str,
        kind: str,
        namespace: str,
        name: str,
        patch: Mapping[str, Any],
        *,
        subresource: str | None = None,
    ) -> Unstructured:
        with self._lock:
            self._check_failure("patch", kind, namespace, name)
            key = self._key(api_version, kind, namespace, name)
            stored = self._require(api_version, kind, namespace, name)
            if subresource == "status":
                updated = copy.deepcopy(stored)
                updated["status"] = apply_merge_patch(stored.get("status") or {}, patch.get("status") or {})
            else:
                body = {k: v for k, v in patch.items() if k != "status"}
                updated = apply_merge_patch(stored, body)
            updated["metadata"]["resourceVersion"] = str(next(self._versions))

            if get_nested(updated, "metadata", "deletionTimestamp") and not get_nested(
                updated, "metadata", "finalizers", default=None
            ):
                del self._objects[key]
            else:
                self._objects[key] = updated
            return copy.deepcopy(updated)

    # Internals ------------------------------------------------------------------------

    def _key(self, api_version: str, kind: str, namespace: str, name: str) -> ObjMetadata:
        group, _ = split_api_version(api_version)
        return ObjMetadata(namespace=namespace, name=name, group=group, kind=kind)

    def _require(self, api_version: str, kind: str, namespace: str, name: str) -> Unstructured:
        key = self._key(api_version, kind, namespace, name)
        stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(f"{fmt_metadata(key)} not found", status_code=404)
        return stored

    def _check_failure(self, operation: str, kind: str, namespace: str, name: str) -> None:
        ref = fmt_metadata(ObjMetadata(namespace=namespace, name=name, group="", kind=kind))
        for failure in self._failures:
            if failure.operation != operation or failure.ref != ref:
                continue
            if failure.remaining is not None:
                failure.remaining -= 1
                if failure.remaining <= 0:
                    self._failures.remove(failure)
            raise failure.error

    def _stamp_new(self, obj: Unstructured) -> None:
        metadata = obj.setdefault("metadata", {})
        metadata.setdefault("uid", f"uid-{next(self._versions)}")
        metadata["resourceVersion"] = str(next(self._versions))
        metadata.setdefault("generation", 1)
        metadata.setdefault("creationTimestamp", _timestamp(self.clock()))
        _seed_status(obj)

    def _claim(self, obj: Unstructured, field_manager: str) -> None:
        managed = obj["metadata"].setdefault("managedFields", [])
        entry = {"manager": field_manager, "operation": "Apply"}
        if entry not in [{"manager": m.get("manager"), "operation": m.get("operation")} for m in managed]:
            managed.append(entry)

    def _check_immutable(self, meta: ObjMetadata, existing: Unstructured, desired: Unstructured) -> None:
        for path in self.immutable_fields.get(meta.kind, ()):
            before = get_nested(existing, *path)
            after = get_nested(desired, *path)
            if before is not None and after is not None and before != after:
                raise ImmutableFieldError(
                    f"{fmt_metadata(meta)} is invalid: {'.'.join(path)}: field is immutable",
                    status_code=422,
                )

    def _merge(self, existing: Unstructured, desired: Unstructured) -> Unstructured:
        merged = copy.deepcopy(existing)
        for key, value in desired.items():
            if key in {"metadata", "status"}:
                continue
            merged[key] = value

        metadata = merged["metadata"]
        for key, value in (desired.get("metadata") or {}).items():
            if key in _SERVER_METADATA:
                continue
            if key in {"labels", "annotations"} and isinstance(value, dict):
                set_nested(merged, {**(metadata.get(key) or {}), **value}, "metadata", key)
            else:
                metadata[key] = value
        return merged


class MemoryClientFactory:
    """Hands out the shared store; impersonation requires the ServiceAccount to exist."""

    def __init__(self, store: MemoryObjectStore) -> None:
        self.store = store

    def scoped(self, service_account: str, namespace: str) -> MemoryObjectStore:
        if service_account and not self.can_impersonate(service_account, namespace):
            raise ImpersonationError(
                f"ServiceAccount/{namespace}/{service_account} not found", status_code=403
            )
        return self.store

    def can_impersonate(self, service_account: str, namespace: str) -> bool:
        if not service_account:
            return True
        return self.store.exists("v1", "ServiceAccount", namespace, service_account)


def _seed_status(obj: Unstructured) -> None:
    """Give cluster-scoped definitions the status the API server would publish."""

    kind = obj.get("kind")
    if kind == "CustomResourceDefinition" and "status" not in obj:
        obj["status"] = {
            "conditions": [
                {"type": "NamesAccepted", "status": "True"},
                {"type": "Established", "status": "True"},
            ]
        }
    elif kind == "Namespace" and "status" not in obj:
        obj["status"] = {"phase": "Active"}


def _content(obj: Unstructured) -> Unstructured:
    comparable = {key: value for key, value in obj.items() if key != "status"}
    metadata = dict(comparable.get("metadata") or {})
    metadata.pop("resourceVersion", None)
    comparable["metadata"] = metadata
    return comparable


def _spec(obj: Unstructured) -> Unstructured:
    return {key: value for key, value in obj.items() if key not in {"metadata", "status"}}


def _timestamp(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
