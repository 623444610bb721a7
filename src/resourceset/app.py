"""Application orchestration entry points."""

from __future__ import annotations

import copy
from logging import getLogger
from typing import TYPE_CHECKING, Any

from resourceset.adapters.cel import CelExpressionEngine
from resourceset.adapters.crd import CrdCodec, provider_decoders
from resourceset.adapters.kubernetes import (
    KubernetesApi,
    KubernetesClientFactory,
    KubernetesEventRecorder,
    LoopRunner,
    ResourceMapper,
)
from resourceset.adapters.memory import MemoryClientFactory, MemoryObjectStore
from resourceset.adapters.templating import JinjaResourceBuilder
from resourceset.config import get_kubernetes_config, get_operator_config
from resourceset.domain.apply.engine import ApplyEngine, ApplySettings
from resourceset.domain.apply.normalize import set_common_metadata
from resourceset.domain.dependencies import DependencyGate
from resourceset.domain.inputs.resolver import InputResolver
from resourceset.domain.model.objects import namespace_of, set_nested
from resourceset.domain.model.resourceset import (
    API_VERSION,
    OWNER_LABEL_GROUP,
    RESOURCE_SET_KIND,
)
from resourceset.domain.reconciler import ReconcilerSettings, ResourceSetReconciler
from resourceset.runtime import Controller

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence

    from resourceset.config import KubernetesConfig, OperatorConfig
    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.ports.builder import ResourceBuilder
    from resourceset.domain.ports.events import EventRecorder
    from resourceset.domain.ports.expressions import ExpressionEngine
    from resourceset.domain.ports.store import ClientFactory, ObjectStore


log = getLogger(__name__)


def build_reconciler(
    store: ObjectStore,
    clients: ClientFactory,
    recorder: EventRecorder,
    *,
    config: OperatorConfig | None = None,
    builder: ResourceBuilder | None = None,
    expressions: ExpressionEngine | None = None,
) -> ResourceSetReconciler:
    """Wire the reconciler with the default builder, CEL engine and CRD codec."""

    operator = config or get_operator_config()
    engine = ApplyEngine(
        clients,
        recorder,
        ApplySettings(
            field_manager=operator.field_manager,
            default_service_account=operator.default_service_account,
            take_ownership_from=operator.take_ownership_from,
            wait_interval=operator.wait_interval.total_seconds(),
        ),
    )
    return ResourceSetReconciler(
        store=store,
        codec=CrdCodec(),
        clients=clients,
        resolver=InputResolver(store, provider_decoders()),
        gate=DependencyGate(store, expressions or CelExpressionEngine()),
        builder=builder or JinjaResourceBuilder(),
        engine=engine,
        recorder=recorder,
        settings=ReconcilerSettings(
            requeue_dependency=operator.requeue_dependency,
            interval_jitter=operator.interval_jitter,
        ),
    )


def build_resource_set(
    manifest: Unstructured,
    *,
    inputs: list[dict[str, Any]] | None = None,
    providers: Sequence[Unstructured] = (),
    namespace: str = "",
) -> list[Unstructured]:
    """Render a ResourceSet manifest offline, without contacting a cluster.

    ``inputs`` replaces the inline inputs; ``providers`` are input provider
    manifests resolved through an in-memory store.
    """

    manifest = copy.deepcopy(manifest)
    manifest["apiVersion"] = API_VERSION
    manifest["kind"] = RESOURCE_SET_KIND
    if not namespace_of(manifest) and namespace:
        set_nested(manifest, namespace, "metadata", "namespace")

    resource_set = CrdCodec().decode(manifest)
    if not resource_set.namespace:
        raise ValueError("ResourceSet namespace must be set either in the manifest or with --namespace")
    if not resource_set.name:
        raise ValueError("ResourceSet name must be set in the manifest")
    if resource_set.spec.inputs_from and inputs is None and not providers:
        raise ValueError(
            "ResourceSet has '.spec.inputsFrom', please provide the inputs with "
            "--inputs-from or --inputs-from-provider"
        )

    if inputs is not None:
        resource_set.spec.inputs = inputs
    if not providers:
        resource_set.spec.inputs_from = []

    store = MemoryObjectStore()
    for item in providers:
        provider = copy.deepcopy(item)
        if not namespace_of(provider):
            set_nested(provider, resource_set.namespace, "metadata", "namespace")
        store.add(provider)

    combined = InputResolver(store, provider_decoders()).combined_inputs(resource_set)
    objects = JinjaResourceBuilder().build(
        resource_set.spec.resources_template, resource_set.spec.resources, combined
    )
    if not objects:
        raise ValueError("no objects were generated")

    common = resource_set.spec.common_metadata
    if common is not None:
        set_common_metadata(objects, common.labels, common.annotations)
    set_common_metadata(
        objects,
        {
            f"{OWNER_LABEL_GROUP}/name": resource_set.name,
            f"{OWNER_LABEL_GROUP}/namespace": resource_set.namespace,
        },
        None,
    )
    log.info("Built %d objects from ResourceSet %s", len(objects), resource_set.key)
    return objects


def run_operator(
    stop: threading.Event,
    *,
    config: OperatorConfig | None = None,
    kubernetes: KubernetesConfig | None = None,
) -> None:
    """Run the controller against the configured API server until ``stop`` is set."""

    operator = config or get_operator_config()
    kube = kubernetes or get_kubernetes_config()
    log.info("Starting operator: server=%s, field_manager=%s", kube.server, operator.field_manager)

    runner = LoopRunner()
    api = KubernetesApi(kube)
    try:
        clients = KubernetesClientFactory(api, ResourceMapper(api), runner)
        recorder = KubernetesEventRecorder(api, runner, component=operator.field_manager)
        reconciler = build_reconciler(clients.operator, clients, recorder, config=operator)
        controller = Controller(
            reconciler,
            clients.operator,
            workers=operator.concurrent,
            resync_period=operator.resync_period,
            namespace=operator.watch_namespace,
        )
        controller.run(stop)
    finally:
        runner.run(api.aclose())
        runner.close()
        log.info("Finished operator run")


def memory_environment(
    objects: Sequence[Unstructured] = (),
) -> tuple[MemoryObjectStore, MemoryClientFactory]:
    """In-memory store and client factory, seeded with ``objects``."""

    store = MemoryObjectStore()
    if objects:
        store.add(*objects)
    return store, MemoryClientFactory(store)
