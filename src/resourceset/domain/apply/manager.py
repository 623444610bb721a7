"""Server-side apply, deletion and readiness polling on top of an ``ObjectStore``."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from resourceset.domain.errors import ApplyError, WaitCancelledError, WaitError
from resourceset.domain.model.objects import (
    ObjMetadata,
    annotations_of,
    api_version_of,
    fmt_object,
    get_nested,
    kind_of,
    labels_of,
    name_of,
    namespace_of,
    set_labels,
)
from resourceset.domain.model.resourceset import SSA_ANNOTATION
from resourceset.domain.ports.store import ImmutableFieldError, NotFoundError, StoreError
from resourceset.domain.readiness import Status, StatusResult, compute_status

from .changeset import Action, ChangeSet, ChangeSetEntry
from .normalize import matches_all_labels, matches_any

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.ports.store import ObjectStore


log = getLogger(__name__)

STAGE_ONE_KINDS = frozenset({"CustomResourceDefinition", "Namespace"})


class ManagedFieldsOperation(StrEnum):
    APPLY = "Apply"
    UPDATE = "Update"


class SSAPolicy(StrEnum):
    MERGE = "Merge"
    IF_NOT_PRESENT = "IfNotPresent"
    IGNORE = "Ignore"


@dataclass(frozen=True, slots=True)
class FieldManager:
    """A previous field manager whose ownership the apply takes over."""

    name: str
    operation: ManagedFieldsOperation
    exact_match: bool = False

    def matches(self, entry: Mapping[str, Any]) -> bool:
        manager = str(entry.get("manager", ""))
        if entry.get("operation") != self.operation:
            return False
        if self.exact_match:
            return manager == self.name
        return manager.startswith(self.name)


@dataclass(frozen=True, slots=True)
class ApplyCleanupOptions:
    annotations: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    field_managers: tuple[FieldManager, ...] = ()


@dataclass(frozen=True, slots=True)
class WaitOptions:
    interval: float = 2.0
    timeout: float = 60.0
    fail_fast: bool = False


@dataclass(frozen=True, slots=True)
class ApplyOptions:
    force: bool = False
    force_selector: Mapping[str, str] = field(default_factory=dict["str", "str"])
    cleanup: ApplyCleanupOptions = field(default_factory=ApplyCleanupOptions)
    wait: WaitOptions = field(default_factory=WaitOptions)


@dataclass(frozen=True, slots=True)
class DeleteOptions:
    inclusions: Mapping[str, str] = field(default_factory=dict["str", "str"])
    exclusions: Mapping[str, str] = field(default_factory=dict["str", "str"])


class ResourceManager:
    """Reconciles unstructured objects through a store with a fixed field manager."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        field_manager: str,
        owner_group: str,
        stop: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.field_manager = field_manager
        self.owner_group = owner_group
        self._stop = stop
        self._clock = clock

    def owner_labels(self, name: str, namespace: str) -> dict[str, str]:
        return {
            f"{self.owner_group}/name": name,
            f"{self.owner_group}/namespace": namespace,
        }

    def set_owner_labels(self, objects: Iterable[Unstructured], name: str, namespace: str) -> None:
        owner = self.owner_labels(name, namespace)
        for obj in objects:
            set_labels(obj, {**labels_of(obj), **owner})

    def apply(self, obj: Unstructured, opts: ApplyOptions) -> ChangeSetEntry:
        existing = self._get_or_none(obj)

        policy = annotations_of(obj).get(SSA_ANNOTATION, "")
        if policy.lower() == SSAPolicy.IGNORE.lower():
            return ChangeSetEntry.for_object(obj, Action.SKIPPED)
        if existing is not None and policy.lower() == SSAPolicy.IF_NOT_PRESENT.lower():
            return ChangeSetEntry.for_object(obj, Action.SKIPPED)

        if existing is not None:
            self._cleanup(existing, opts.cleanup)

        try:
            applied = self.store.apply(obj, field_manager=self.field_manager, force=True)
        except ImmutableFieldError as exc:
            if not (opts.force or matches_any(obj, opts.force_selector)):
                raise ApplyError(f"{fmt_object(obj)} immutable field detected: {exc}") from exc
            log.info("Recreating %s due to immutable field changes", fmt_object(obj))
            self._recreate(obj, opts.wait)
            return ChangeSetEntry.for_object(obj, Action.CREATED)
        except StoreError as exc:
            raise ApplyError(f"{fmt_object(obj)} apply failed: {exc}") from exc
        return ChangeSetEntry.for_object(applied.object, applied.action)

    def apply_all(self, objects: Sequence[Unstructured], opts: ApplyOptions) -> ChangeSet:
        change_set = ChangeSet()
        for obj in objects:
            change_set.add(self.apply(obj, opts))
        return change_set

    def apply_all_staged(self, objects: Sequence[Unstructured], opts: ApplyOptions) -> ChangeSet:
        """Apply cluster definitions first, then class kinds, then everything else.

        CRDs and Namespaces are waited on before the next stage, so custom
        resources and namespaced objects never race their definitions.
        """

        definitions: list[Unstructured] = []
        classes: list[Unstructured] = []
        rest: list[Unstructured] = []
        for obj in objects:
            kind = kind_of(obj)
            if kind in STAGE_ONE_KINDS:
                definitions.append(obj)
            elif kind.endswith("Class"):
                classes.append(obj)
            else:
                rest.append(obj)

        change_set = ChangeSet()
        if definitions:
            stage = self.apply_all(definitions, opts)
            change_set.extend(stage)
            self.wait_for_set(definitions, opts.wait)
        if classes:
            change_set.extend(self.apply_all(classes, opts))
        if rest:
            change_set.extend(self.apply_all(rest, opts))
        return change_set

    def delete(self, obj: Unstructured, opts: DeleteOptions) -> ChangeSetEntry:
        try:
            existing = self.store.get(
                api_version_of(obj), kind_of(obj), namespace_of(obj), name_of(obj)
            )
        except NotFoundError:
            return ChangeSetEntry.for_object(obj, Action.DELETED)
        except StoreError as exc:
            raise ApplyError(f"{fmt_object(obj)} query failed: {exc}") from exc

        if opts.inclusions and not matches_all_labels(existing, opts.inclusions):
            return ChangeSetEntry.for_object(obj, Action.SKIPPED)
        if opts.exclusions and matches_any(existing, opts.exclusions):
            return ChangeSetEntry.for_object(obj, Action.SKIPPED)

        try:
            self.store.delete(api_version_of(obj), kind_of(obj), namespace_of(obj), name_of(obj))
        except NotFoundError:
            pass
        except StoreError as exc:
            raise ApplyError(f"{fmt_object(obj)} delete failed: {exc}") from exc
        return ChangeSetEntry.for_object(obj, Action.DELETED)

    def delete_all(self, objects: Iterable[Unstructured], opts: DeleteOptions) -> ChangeSet:
        """Delete every object, collecting failures instead of stopping at the first."""

        change_set = ChangeSet()
        errors: list[str] = []
        for obj in objects:
            try:
                change_set.add(self.delete(obj, opts))
            except ApplyError as exc:
                errors.append(str(exc))
                change_set.add(ChangeSetEntry.for_object(obj, Action.FAILED))
        if errors:
            raise ApplyError("; ".join(errors))
        return change_set

    def wait_for_set(self, objects: Iterable[Unstructured], opts: WaitOptions) -> None:
        """Poll until every object is ``Current``; raise ``WaitError`` otherwise."""

        pending = list(objects)
        deadline = self._clock() + opts.timeout
        while True:
            not_ready: list[str] = []
            for obj in pending:
                status = self._status_of(obj)
                if status.status is Status.CURRENT:
                    continue
                if opts.fail_fast and status.status is Status.FAILED:
                    raise WaitError(f"{fmt_object(obj)} status: '{status.status}' {status.message}")
                not_ready.append(f"{fmt_object(obj)} status: '{status.status}'")
            if not not_ready:
                return
            if self._clock() >= deadline:
                raise WaitError(f"timeout waiting for: [{', '.join(not_ready)}]")
            self._sleep(opts.interval)

    def wait_for_termination(self, objects: Iterable[Unstructured], opts: WaitOptions) -> None:
        pending = list(objects)
        deadline = self._clock() + opts.timeout
        while True:
            remaining = [obj for obj in pending if self._get_or_none(obj) is not None]
            if not remaining:
                return
            if self._clock() >= deadline:
                names = ", ".join(fmt_object(obj) for obj in remaining)
                raise WaitError(f"timeout waiting for termination of: [{names}]")
            self._sleep(opts.interval)

    def _status_of(self, obj: Unstructured) -> StatusResult:
        live = self._get_or_none(obj)
        if live is None:
            return StatusResult(Status.NOT_FOUND, "Resource not found")
        return compute_status(live)

    def _sleep(self, seconds: float) -> None:
        if self._stop is None:
            time.sleep(seconds)
            return
        if self._stop.wait(seconds):
            raise WaitCancelledError("wait cancelled")

    def _get_or_none(self, obj: Unstructured) -> Unstructured | None:
        try:
            return self.store.get(api_version_of(obj), kind_of(obj), namespace_of(obj), name_of(obj))
        except NotFoundError:
            return None
        except StoreError as exc:
            raise ApplyError(f"{fmt_object(obj)} query failed: {exc}") from exc

    def _cleanup(self, existing: Unstructured, opts: ApplyCleanupOptions) -> None:
        """Strip foreign bookkeeping and drop managed fields of replaced managers."""

        metadata: dict[str, Any] = {}
        annotations = annotations_of(existing)
        stale_annotations = {key: None for key in opts.annotations if key in annotations}
        if stale_annotations:
            metadata["annotations"] = stale_annotations
        labels = labels_of(existing)
        stale_labels = {key: None for key in opts.labels if key in labels}
        if stale_labels:
            metadata["labels"] = stale_labels

        managed = get_nested(existing, "metadata", "managedFields", default=None) or []
        kept = [
            entry
            for entry in managed
            if not any(manager.matches(entry) for manager in opts.field_managers)
        ]
        if len(kept) != len(managed):
            metadata["managedFields"] = kept

        if not metadata:
            return
        log.debug("Cleaning up metadata of %s: %s", fmt_object(existing), sorted(metadata))
        try:
            self.store.patch(
                api_version_of(existing),
                kind_of(existing),
                namespace_of(existing),
                name_of(existing),
                {"metadata": metadata},
            )
        except StoreError as exc:
            raise ApplyError(f"{fmt_object(existing)} metadata cleanup failed: {exc}") from exc

    def _recreate(self, obj: Unstructured, wait: WaitOptions) -> None:
        meta = ObjMetadata.from_object(obj)
        try:
            self.store.delete(api_version_of(obj), meta.kind, meta.namespace, meta.name)
        except NotFoundError:
            pass
        except StoreError as exc:
            raise ApplyError(f"{fmt_object(obj)} delete failed: {exc}") from exc
        self.wait_for_termination([obj], wait)
        try:
            self.store.apply(obj, field_manager=self.field_manager, force=True)
        except StoreError as exc:
            raise ApplyError(f"{fmt_object(obj)} apply failed: {exc}") from exc
