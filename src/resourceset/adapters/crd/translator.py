"""Translate CRD payloads into domain aggregates and encode status back."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from resourceset.domain.errors import ConfigurationError
from resourceset.domain.history import History, Snapshot
from resourceset.domain.inventory import Inventory, ResourceRef
from resourceset.domain.model.conditions import Condition, ConditionSet, ConditionStatus
from resourceset.domain.model.durations import format_duration, parse_duration
from resourceset.domain.model.objects import name_of, namespace_of
from resourceset.domain.model.providers import ResourceSetInputProvider
from resourceset.domain.model.resourceset import (
    INPUT_PROVIDER_KIND,
    CommonMetadata,
    DependencyRef,
    InputProviderRef,
    ResourceSet,
    ResourceSetSpec,
    ResourceSetStatus,
)
from resourceset.domain.model.selectors import LabelSelector, SelectorRequirement

from .schema import (
    ConditionPayload,
    LabelSelectorPayload,
    ResourceSetInputProviderPayload,
    ResourceSetPayload,
    ResourceSetSpecPayload,
    ResourceSetStatusPayload,
    SnapshotPayload,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.ports.codec import ProviderDecoder


log = getLogger(__name__)


def parse_resource_set(obj: Unstructured) -> ResourceSetPayload:
    try:
        return ResourceSetPayload.model_validate(obj)
    except ValidationError as exc:
        raise ConfigurationError(
            f"invalid ResourceSet {namespace_of(obj)}/{name_of(obj)}: {exc}"
        ) from exc


def decode_resource_set(
    obj: Unstructured, *, clock: Callable[[], datetime] | None = None
) -> ResourceSet:
    payload = parse_resource_set(obj)
    meta = payload.metadata
    return ResourceSet(
        name=meta.name,
        namespace=meta.namespace,
        uid=meta.uid,
        generation=meta.generation,
        resource_version=meta.resource_version,
        labels=dict(meta.labels),
        annotations=dict(meta.annotations),
        finalizers=list(meta.finalizers),
        deletion_timestamp=meta.deletion_timestamp,
        spec=_decode_spec(payload.spec),
        status=_decode_status(payload.status, clock),
        api_version=payload.api_version,
        kind=payload.kind,
    )


def decode_input_provider(obj: Unstructured) -> ResourceSetInputProvider:
    try:
        payload = ResourceSetInputProviderPayload.model_validate(obj)
    except ValidationError as exc:
        raise ConfigurationError(
            f"invalid {INPUT_PROVIDER_KIND} {namespace_of(obj)}/{name_of(obj)}: {exc}"
        ) from exc
    meta = payload.metadata
    return ResourceSetInputProvider(
        name=meta.name,
        namespace=meta.namespace,
        uid=meta.uid,
        labels=dict(meta.labels),
        exported_inputs=[dict(item) for item in payload.status.exported_inputs],
        api_version=payload.api_version,
        kind=payload.kind,
    )


def encode_resource_set(resource_set: ResourceSet) -> Unstructured:
    """Encode identity, finalizers and status; ``spec`` is owned by the user."""

    metadata: dict[str, Any] = {"name": resource_set.name}
    if resource_set.namespace:
        metadata["namespace"] = resource_set.namespace
    if resource_set.uid:
        metadata["uid"] = resource_set.uid
    if resource_set.resource_version:
        metadata["resourceVersion"] = resource_set.resource_version
    if resource_set.generation:
        metadata["generation"] = resource_set.generation
    if resource_set.labels:
        metadata["labels"] = dict(resource_set.labels)
    if resource_set.annotations:
        metadata["annotations"] = dict(resource_set.annotations)
    if resource_set.finalizers:
        metadata["finalizers"] = list(resource_set.finalizers)
    if resource_set.deletion_timestamp is not None:
        metadata["deletionTimestamp"] = _format_time(resource_set.deletion_timestamp)

    return {
        "apiVersion": resource_set.api_version,
        "kind": resource_set.kind,
        "metadata": metadata,
        "status": encode_status(resource_set.status),
    }


def encode_status(status: ResourceSetStatus) -> dict[str, Any]:
    encoded: dict[str, Any] = {}
    if len(status.conditions):
        encoded["conditions"] = [_encode_condition(item) for item in status.conditions]
    if status.inventory is not None:
        encoded["inventory"] = {
            "entries": [{"id": entry.id, "v": entry.version} for entry in status.inventory]
        }
    if status.last_applied_revision:
        encoded["lastAppliedRevision"] = status.last_applied_revision
    if status.last_handled_reconcile_at:
        encoded["lastHandledReconcileAt"] = status.last_handled_reconcile_at
    if len(status.history):
        encoded["history"] = [_encode_snapshot(item) for item in status.history]
    return encoded


class CrdCodec:
    """``ResourceSetCodec`` backed by the pydantic payload models."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock

    def decode(self, obj: Unstructured) -> ResourceSet:
        return decode_resource_set(obj, clock=self._clock)

    def encode(self, resource_set: ResourceSet) -> Unstructured:
        return encode_resource_set(resource_set)


def provider_decoders() -> dict[str, ProviderDecoder]:
    """Decoder registry keyed by input provider kind."""

    return {INPUT_PROVIDER_KIND: decode_input_provider}


def _decode_spec(spec: ResourceSetSpecPayload) -> ResourceSetSpec:
    common = None
    if spec.common_metadata is not None:
        common = CommonMetadata(
            labels=dict(spec.common_metadata.labels),
            annotations=dict(spec.common_metadata.annotations),
        )

    timeout: timedelta | None = None
    if spec.timeout:
        try:
            timeout = parse_duration(spec.timeout)
        except ValueError as exc:
            raise ConfigurationError(f"invalid timeout '{spec.timeout}': {exc}") from exc

    return ResourceSetSpec(
        common_metadata=common,
        inputs=[dict(item) for item in spec.inputs],
        inputs_from=[
            InputProviderRef(
                kind=ref.kind,
                api_version=ref.api_version,
                name=ref.name,
                selector=_decode_selector(ref.selector),
            )
            for ref in spec.inputs_from
        ],
        input_strategy=spec.input_strategy.name if spec.input_strategy else "Flatten",
        resources=[dict(item) for item in spec.resources],
        resources_template=spec.resources_template,
        depends_on=[
            DependencyRef(
                api_version=dep.api_version,
                kind=dep.kind,
                name=dep.name,
                namespace=dep.namespace,
                ready=dep.ready,
                ready_expr=dep.ready_expr,
            )
            for dep in spec.depends_on
        ],
        service_account_name=spec.service_account_name,
        wait=spec.wait,
        timeout=timeout,
    )


def _decode_selector(selector: LabelSelectorPayload | None) -> LabelSelector | None:
    if selector is None:
        return None
    return LabelSelector(
        match_labels=dict(selector.match_labels),
        match_expressions=tuple(
            SelectorRequirement(key=req.key, operator=req.operator, values=tuple(req.values))
            for req in selector.match_expressions
        ),
    )


def _decode_status(
    status: ResourceSetStatusPayload, clock: Callable[[], datetime] | None
) -> ResourceSetStatus:
    inventory = None
    if status.inventory is not None:
        inventory = Inventory(
            [ResourceRef(id=entry.id, version=entry.v) for entry in status.inventory.entries]
        )
    return ResourceSetStatus(
        conditions=ConditionSet([_decode_condition(item) for item in status.conditions], clock=clock),
        inventory=inventory,
        last_applied_revision=status.last_applied_revision or "",
        last_handled_reconcile_at=status.last_handled_reconcile_at or "",
        history=History([_decode_snapshot(item) for item in status.history]),
    )


def _decode_condition(payload: ConditionPayload) -> Condition:
    try:
        status = ConditionStatus(payload.status)
    except ValueError:
        log.warning("Ignoring unknown status '%s' of condition %s", payload.status, payload.type)
        status = ConditionStatus.UNKNOWN
    return Condition(
        type=payload.type,
        status=status,
        reason=payload.reason,
        message=payload.message,
        observed_generation=payload.observed_generation,
        last_transition_time=payload.last_transition_time,
    )


def _decode_snapshot(payload: SnapshotPayload) -> Snapshot:
    try:
        duration = parse_duration(payload.last_reconciled_duration)
    except ValueError:
        duration = timedelta(0)
    return Snapshot(
        digest=payload.digest,
        first_reconciled=payload.first_reconciled,
        last_reconciled=payload.last_reconciled,
        last_reconciled_duration=duration,
        last_reconciled_status=payload.last_reconciled_status,
        total_reconciliations=payload.total_reconciliations,
        metadata=dict(payload.metadata),
    )


def _encode_condition(condition: Condition) -> dict[str, Any]:
    encoded: dict[str, Any] = {
        "type": condition.type,
        "status": str(condition.status),
        "reason": condition.reason,
        "message": condition.message,
        "observedGeneration": condition.observed_generation,
    }
    if condition.last_transition_time is not None:
        encoded["lastTransitionTime"] = _format_time(condition.last_transition_time)
    return encoded


def _encode_snapshot(snapshot: Snapshot) -> dict[str, Any]:
    encoded: dict[str, Any] = {
        "digest": snapshot.digest,
        "firstReconciled": _format_time(snapshot.first_reconciled),
        "lastReconciled": _format_time(snapshot.last_reconciled),
        "lastReconciledDuration": format_duration(snapshot.last_reconciled_duration),
        "lastReconciledStatus": snapshot.last_reconciled_status,
        "totalReconciliations": snapshot.total_reconciliations,
    }
    if snapshot.metadata:
        encoded["metadata"] = dict(snapshot.metadata)
    return encoded


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
