"""Apply & prune: converge the cluster onto the desired objects of a ResourceSet."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import yaml

from resourceset.domain.errors import ApplyError, WaitCancelledError, WaitError
from resourceset.domain.inventory import Inventory, diff_inventories
from resourceset.domain.model.objects import (
    ObjMetadata,
    api_version_of,
    fmt_object,
    gvk_of,
    kind_of,
    name_of,
    namespace_of,
)
from resourceset.domain.model.resourceset import (
    DISABLED_VALUE,
    ENABLED_VALUE,
    FORCE_ANNOTATION,
    OWNER_LABEL_GROUP,
    PRUNE_ANNOTATION,
)
from resourceset.domain.ports.events import EventType
from resourceset.domain.ports.store import StoreError
from resourceset.domain.readiness import condition

from .changeset import ChangeSet
from .copy_data import copy_resources
from .manager import (
    ApplyCleanupOptions,
    ApplyOptions,
    DeleteOptions,
    FieldManager,
    ManagedFieldsOperation,
    ResourceManager,
    WaitOptions,
)
from .normalize import normalize_objects, set_common_metadata

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.resourceset import ResourceSet
    from resourceset.domain.ports.events import EventRecorder
    from resourceset.domain.ports.store import ClientFactory, ObjectStore


log = getLogger(__name__)

APPLY_SUCCEEDED_REASON = "ApplySucceeded"

# Kinds owned by Flux controllers that may need RBAC objects of the same set to clean up.
MANAGED_GROUPS = ("kustomize.toolkit.fluxcd.io", "helm.toolkit.fluxcd.io")
FLUX_GROUP_SUFFIX = ".fluxcd.io"

CLEANUP_ANNOTATIONS = (
    "kubectl.kubernetes.io/last-applied-configuration",
    "meta.helm.sh/release-name",
    "meta.helm.sh/release-namespace",
)
CLEANUP_LABELS = (
    "kustomize.toolkit.fluxcd.io/name",
    "kustomize.toolkit.fluxcd.io/namespace",
)


def take_ownership_from(extra: Sequence[str] = ()) -> tuple[FieldManager, ...]:
    """Field managers whose fields are taken over, undoing kubectl and Helm edits."""

    managers = [
        FieldManager("kustomize-controller", ManagedFieldsOperation.APPLY, exact_match=True),
        FieldManager("helm", ManagedFieldsOperation.UPDATE, exact_match=True),
        FieldManager("kubectl", ManagedFieldsOperation.UPDATE),
        FieldManager("before-first-apply", ManagedFieldsOperation.UPDATE),
        FieldManager("kubectl", ManagedFieldsOperation.APPLY),
    ]
    for name in extra:
        managers.append(FieldManager(name, ManagedFieldsOperation.APPLY, exact_match=True))
        managers.append(FieldManager(name, ManagedFieldsOperation.UPDATE, exact_match=True))
    return tuple(managers)


def objects_digest(objects: Sequence[Unstructured]) -> str:
    """Digest of the canonical multi-document YAML rendering of ``objects``."""

    documents = [yaml.safe_dump(obj, sort_keys=True, default_flow_style=False) for obj in objects]
    data = "---\n".join(documents)
    return "sha256:" + hashlib.sha256(data.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class ApplySettings:
    field_manager: str = "flux-operator"
    default_service_account: str = ""
    take_ownership_from: tuple[str, ...] = ()
    wait_interval: float = 5.0
    owner_group: str = OWNER_LABEL_GROUP


@dataclass(slots=True)
class ApplyOutcome:
    digest: str
    inventory: Inventory
    change_set: ChangeSet
    deleted: ChangeSet = field(default_factory=ChangeSet)


class ApplyEngine:
    def __init__(
        self,
        clients: ClientFactory,
        recorder: EventRecorder,
        settings: ApplySettings | None = None,
    ) -> None:
        self._clients = clients
        self._recorder = recorder
        self.settings = settings or ApplySettings()

    def service_account_for(self, resource_set: ResourceSet) -> str:
        return resource_set.spec.service_account_name or self.settings.default_service_account

    def resource_manager(
        self, resource_set: ResourceSet, *, stop: threading.Event | None = None
    ) -> ResourceManager:
        try:
            store = self._clients.scoped(
                self.service_account_for(resource_set), resource_set.namespace
            )
        except StoreError as exc:
            raise ApplyError(f"failed to build kube client: {exc}") from exc
        return ResourceManager(
            store,
            field_manager=self.settings.field_manager,
            owner_group=self.settings.owner_group,
            stop=stop,
        )

    def apply(
        self,
        resource_set: ResourceSet,
        objects: list[Unstructured],
        *,
        stop: threading.Event | None = None,
    ) -> ApplyOutcome:
        """Apply ``objects``, prune what the previous inventory holds beyond them.

        The ResourceSet status inventory is replaced as soon as the apply
        succeeds, so a failing prune or wait still records what is owned.
        """

        old_inventory = (
            resource_set.status.inventory.copy() if resource_set.status.inventory else Inventory()
        )

        manager = self.resource_manager(resource_set, stop=stop)
        manager.set_owner_labels(objects, resource_set.name, resource_set.namespace)

        normalize_objects(objects)
        common = resource_set.spec.common_metadata
        if common is not None:
            set_common_metadata(objects, common.labels, common.annotations)

        copy_resources(manager.store, objects)

        digest = objects_digest(objects)

        opts = ApplyOptions(
            force=resource_set.is_force_enabled(),
            force_selector={FORCE_ANNOTATION: ENABLED_VALUE},
            cleanup=ApplyCleanupOptions(
                annotations=CLEANUP_ANNOTATIONS,
                labels=CLEANUP_LABELS,
                field_managers=take_ownership_from(self.settings.take_ownership_from),
            ),
        )
        change_set = manager.apply_all_staged(objects, opts)

        result_set = change_set.changed()
        if result_set:
            log.info("Server-side apply completed:\n%s", result_set.to_log())

        new_inventory = Inventory.from_change_set(change_set)
        resource_set.status.inventory = new_inventory

        change_log = [str(entry) for entry in result_set]
        deleted = ChangeSet()
        stale = diff_inventories(old_inventory, new_inventory)
        if stale:
            deleted = self.delete_all_staged(
                manager, stale, self.delete_options(manager, resource_set)
            )
            if deleted:
                change_log.extend(str(entry) for entry in deleted)
                log.info("Garbage collection completed:\n%s", deleted.to_log())

        if change_log:
            self._recorder.event(
                resource_set, EventType.NORMAL, APPLY_SUCCEEDED_REASON, "\n".join(change_log)
            )

        if resource_set.spec.wait and result_set:
            changed = {entry.object_metadata for entry in result_set}
            targets = [obj for obj in objects if ObjMetadata.from_object(obj) in changed]
            wait = WaitOptions(
                interval=self.settings.wait_interval,
                timeout=resource_set.timeout.total_seconds(),
                fail_fast=True,
            )
            try:
                manager.wait_for_set(targets, wait)
            except WaitCancelledError:
                raise
            except WaitError as exc:
                not_ready = aggregate_not_ready_status(manager.store, targets)
                message = f"{exc}\n{not_ready}" if not_ready else str(exc)
                raise WaitError(message) from exc
            log.info("Health check completed")

        return ApplyOutcome(
            digest=digest, inventory=new_inventory, change_set=change_set, deleted=deleted
        )

    def delete_options(self, manager: ResourceManager, resource_set: ResourceSet) -> DeleteOptions:
        return DeleteOptions(
            inclusions=manager.owner_labels(resource_set.name, resource_set.namespace),
            exclusions={PRUNE_ANNOTATION: DISABLED_VALUE},
        )

    def delete_all_staged(
        self,
        manager: ResourceManager,
        objects: Sequence[Unstructured],
        opts: DeleteOptions,
    ) -> ChangeSet:
        """Delete Flux-managed objects first and wait for them, then the rest.

        Flux controllers finalize their objects under impersonation, so the
        service accounts and role bindings of the set must outlive them.
        """

        managed = [obj for obj in objects if api_version_of(obj).startswith(MANAGED_GROUPS)]
        native = [obj for obj in objects if not api_version_of(obj).startswith(MANAGED_GROUPS)]

        change_set = ChangeSet()
        if managed:
            change_set.extend(manager.delete_all(managed, opts))
            try:
                manager.wait_for_termination(managed, WaitOptions())
            except WaitCancelledError:
                raise
            except WaitError as exc:
                log.error("Failed to wait for Flux resources to be deleted: %s", exc)
        if native:
            change_set.extend(manager.delete_all(native, opts))
        return change_set


def aggregate_not_ready_status(store: ObjectStore, objects: Sequence[Unstructured]) -> str:
    """Collect the Ready messages of Flux objects that are not ready."""

    lines: list[str] = []
    for obj in objects:
        if not gvk_of(obj).group.endswith(FLUX_GROUP_SUFFIX):
            continue
        try:
            live = store.get(api_version_of(obj), kind_of(obj), namespace_of(obj), name_of(obj))
        except StoreError:
            continue
        ready = condition(live, "Ready")
        if ready is not None and ready.get("status") != "True":
            lines.append(f"{fmt_object(live)} status: {ready.get('message', '')}")
    return "\n".join(lines)
