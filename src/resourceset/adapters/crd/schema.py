"""Pydantic models describing the ResourceSet and ResourceSetInputProvider payloads."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from resourceset.domain.model.resourceset import API_VERSION, INPUT_PROVIDER_KIND, RESOURCE_SET_KIND


class CrdBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ObjectMetaPayload(CrdBaseModel):
    name: str
    namespace: str = ""
    uid: str = ""
    generation: int = 0
    resource_version: str = Field(default="", alias="resourceVersion")
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list["str"])
    deletion_timestamp: datetime | None = Field(default=None, alias="deletionTimestamp")


class SelectorRequirementPayload(CrdBaseModel):
    key: str
    operator: str
    values: list[str] = Field(default_factory=list["str"])


class LabelSelectorPayload(CrdBaseModel):
    match_labels: dict[str, str] = Field(default_factory=dict, alias="matchLabels")
    match_expressions: list[SelectorRequirementPayload] = Field(
        default_factory=list["SelectorRequirementPayload"], alias="matchExpressions"
    )


class CommonMetadataPayload(CrdBaseModel):
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class DependencyPayload(CrdBaseModel):
    api_version: str = Field(alias="apiVersion")
    kind: str
    name: str
    namespace: str = ""
    ready: bool = False
    ready_expr: str = Field(default="", alias="readyExpr")


class InputProviderRefPayload(CrdBaseModel):
    api_version: str = Field(default=API_VERSION, alias="apiVersion")
    kind: str
    name: str = ""
    selector: LabelSelectorPayload | None = None


class InputStrategyPayload(CrdBaseModel):
    name: str = "Flatten"


class ResourceSetSpecPayload(CrdBaseModel):
    common_metadata: CommonMetadataPayload | None = Field(default=None, alias="commonMetadata")
    inputs: list[dict[str, Any]] = Field(default_factory=list["dict[str, Any]"])
    inputs_from: list[InputProviderRefPayload] = Field(
        default_factory=list["InputProviderRefPayload"], alias="inputsFrom"
    )
    input_strategy: InputStrategyPayload | None = Field(default=None, alias="inputStrategy")
    resources: list[dict[str, Any]] = Field(default_factory=list["dict[str, Any]"])
    resources_template: str = Field(default="", alias="resourcesTemplate")
    depends_on: list[DependencyPayload] = Field(
        default_factory=list["DependencyPayload"], alias="dependsOn"
    )
    service_account_name: str = Field(default="", alias="serviceAccountName")
    wait: bool = False
    timeout: str | None = None


class ConditionPayload(CrdBaseModel):
    type: str
    status: str
    reason: str = ""
    message: str = ""
    observed_generation: int = Field(default=0, alias="observedGeneration")
    last_transition_time: datetime | None = Field(default=None, alias="lastTransitionTime")


class ResourceRefPayload(CrdBaseModel):
    id: str
    v: str


class InventoryPayload(CrdBaseModel):
    entries: list[ResourceRefPayload] = Field(default_factory=list["ResourceRefPayload"])


class SnapshotPayload(CrdBaseModel):
    digest: str
    first_reconciled: datetime = Field(alias="firstReconciled")
    last_reconciled: datetime = Field(alias="lastReconciled")
    last_reconciled_duration: str = Field(default="0s", alias="lastReconciledDuration")
    last_reconciled_status: str = Field(default="", alias="lastReconciledStatus")
    total_reconciliations: int = Field(default=1, alias="totalReconciliations")
    metadata: dict[str, str] = Field(default_factory=dict)


class ResourceSetStatusPayload(CrdBaseModel):
    conditions: list[ConditionPayload] = Field(default_factory=list["ConditionPayload"])
    inventory: InventoryPayload | None = None
    last_applied_revision: str | None = Field(default=None, alias="lastAppliedRevision")
    last_handled_reconcile_at: str | None = Field(default=None, alias="lastHandledReconcileAt")
    history: list[SnapshotPayload] = Field(default_factory=list["SnapshotPayload"])


class ResourceSetPayload(CrdBaseModel):
    api_version: str = Field(default=API_VERSION, alias="apiVersion")
    kind: str = RESOURCE_SET_KIND
    metadata: ObjectMetaPayload
    spec: ResourceSetSpecPayload = Field(default_factory=ResourceSetSpecPayload)
    status: ResourceSetStatusPayload = Field(default_factory=ResourceSetStatusPayload)


class InputProviderStatusPayload(CrdBaseModel):
    exported_inputs: list[dict[str, Any]] = Field(
        default_factory=list["dict[str, Any]"], alias="exportedInputs"
    )


class ResourceSetInputProviderPayload(CrdBaseModel):
    api_version: str = Field(default=API_VERSION, alias="apiVersion")
    kind: str = INPUT_PROVIDER_KIND
    metadata: ObjectMetaPayload
    status: InputProviderStatusPayload = Field(default_factory=InputProviderStatusPayload)
