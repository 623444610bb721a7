"""Factories and a reconcile harness for ResourceSet tests."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from resourceset.adapters.crd import decode_resource_set
from resourceset.adapters.events import RecordingEventRecorder
from resourceset.adapters.memory import MemoryClientFactory, MemoryObjectStore
from resourceset.app import build_reconciler
from resourceset.config import OperatorConfig
from resourceset.domain.model.resourceset import (
    API_VERSION,
    INPUT_PROVIDER_KIND,
    OWNER_LABEL_GROUP,
    RESOURCE_SET_KIND,
    ObjectKey,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.resourceset import ResourceSet
    from resourceset.domain.reconciler import ResourceSetReconciler, Result


def resource_set_manifest(
    name: str = "test",
    namespace: str = "default",
    *,
    resources: Sequence[Unstructured] | None = None,
    template: str = "",
    inputs: Sequence[Mapping[str, Any]] | None = None,
    inputs_from: Sequence[Mapping[str, Any]] | None = None,
    input_strategy: str | None = None,
    depends_on: Sequence[Mapping[str, Any]] | None = None,
    annotations: Mapping[str, str] | None = None,
    service_account: str = "",
    wait: bool = False,
    common_metadata: Mapping[str, Any] | None = None,
) -> Unstructured:
    spec: dict[str, Any] = {}
    if resources is not None:
        spec["resources"] = [dict(item) for item in resources]
    if template:
        spec["resourcesTemplate"] = template
    if inputs is not None:
        spec["inputs"] = [dict(item) for item in inputs]
    if inputs_from is not None:
        spec["inputsFrom"] = [dict(item) for item in inputs_from]
    if input_strategy is not None:
        spec["inputStrategy"] = {"name": input_strategy}
    if depends_on is not None:
        spec["dependsOn"] = [dict(item) for item in depends_on]
    if service_account:
        spec["serviceAccountName"] = service_account
    if wait:
        spec["wait"] = True
    if common_metadata is not None:
        spec["commonMetadata"] = dict(common_metadata)

    metadata: dict[str, Any] = {"name": name, "namespace": namespace}
    if annotations:
        metadata["annotations"] = dict(annotations)
    return {"apiVersion": API_VERSION, "kind": RESOURCE_SET_KIND, "metadata": metadata, "spec": spec}


def config_map(
    name: str,
    namespace: str = "default",
    *,
    data: Mapping[str, str] | None = None,
    labels: Mapping[str, str] | None = None,
    annotations: Mapping[str, str] | None = None,
) -> Unstructured:
    metadata: dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    if labels:
        metadata["labels"] = dict(labels)
    if annotations:
        metadata["annotations"] = dict(annotations)
    obj: Unstructured = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": metadata}
    if data is not None:
        obj["data"] = dict(data)
    return obj


def input_provider(
    name: str,
    namespace: str = "default",
    *,
    inputs: Sequence[Mapping[str, Any]] = (),
    labels: Mapping[str, str] | None = None,
) -> Unstructured:
    metadata: dict[str, Any] = {"name": name, "namespace": namespace}
    if labels:
        metadata["labels"] = dict(labels)
    return {
        "apiVersion": API_VERSION,
        "kind": INPUT_PROVIDER_KIND,
        "metadata": metadata,
        "status": {"exportedInputs": [dict(item) for item in inputs]},
    }


def owner_labels(name: str = "test", namespace: str = "default") -> dict[str, str]:
    return {
        f"{OWNER_LABEL_GROUP}/name": name,
        f"{OWNER_LABEL_GROUP}/namespace": namespace,
    }


TENANTS_TEMPLATE = """\
apiVersion: v1
kind: ConfigMap
metadata:
  name: << inputs.tenant >>-config
  namespace: default
data:
  tenant: << inputs.tenant >>
---
apiVersion: v1
kind: ServiceAccount
metadata:
  name: << inputs.tenant >>
  namespace: default
"""


class ReconcileHarness:
    """Reconciler wired to an in-memory cluster, with shortcuts for driving it."""

    def __init__(
        self,
        store: MemoryObjectStore | None = None,
        recorder: RecordingEventRecorder | None = None,
        *,
        config: OperatorConfig | None = None,
    ) -> None:
        self.store = store or MemoryObjectStore()
        self.clients = MemoryClientFactory(self.store)
        self.recorder = recorder or RecordingEventRecorder()
        self.config = config or OperatorConfig(wait_interval=timedelta(0))
        self.reconciler: ResourceSetReconciler = build_reconciler(
            self.store, self.clients, self.recorder, config=self.config
        )

    def add(self, *objects: Unstructured) -> None:
        self.store.add(*objects)

    def reconcile(self, name: str = "test", namespace: str = "default") -> Result:
        return self.reconciler.reconcile(ObjectKey(namespace=namespace, name=name))

    def converge(self, name: str = "test", namespace: str = "default") -> Result:
        """Run the finalizer pass (when needed) and one full reconcile."""

        if not self.resource_set(name, namespace).has_finalizer():
            self.reconcile(name, namespace)
        return self.reconcile(name, namespace)

    def stored(self, name: str = "test", namespace: str = "default") -> Unstructured:
        return self.store.get(API_VERSION, RESOURCE_SET_KIND, namespace, name)

    def resource_set(self, name: str = "test", namespace: str = "default") -> ResourceSet:
        return decode_resource_set(self.stored(name, namespace))

    def update_spec(self, spec: Mapping[str, Any], name: str = "test", namespace: str = "default") -> None:
        generation = int(self.stored(name, namespace)["metadata"].get("generation", 1))
        self.store.patch(
            API_VERSION,
            RESOURCE_SET_KIND,
            namespace,
            name,
            {"spec": dict(spec), "metadata": {"generation": generation + 1}},
        )

    def annotate(self, annotations: Mapping[str, str], name: str = "test", namespace: str = "default") -> None:
        self.store.patch(
            API_VERSION, RESOURCE_SET_KIND, namespace, name, {"metadata": {"annotations": dict(annotations)}}
        )

    def delete(self, name: str = "test", namespace: str = "default") -> None:
        self.store.delete(API_VERSION, RESOURCE_SET_KIND, namespace, name)

    def live(self, kind: str, name: str, namespace: str = "default", api_version: str = "v1") -> Unstructured:
        return self.store.get(api_version, kind, namespace, name)

    def exists(self, kind: str, name: str, namespace: str = "default", api_version: str = "v1") -> bool:
        return self.store.exists(api_version, kind, namespace, name)
