"""The ResourceSet aggregate and its API constants."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from resourceset.domain.history import History

from .conditions import ConditionSet
from .durations import parse_duration
from .objects import GroupVersionKind, ObjMetadata, fmt_metadata

if TYPE_CHECKING:
    from datetime import datetime

    from resourceset.domain.inventory import Inventory

    from .objects import Unstructured
    from .selectors import LabelSelector

GROUP = "fluxcd.controlplane.io"
VERSION = "v1"
API_VERSION = f"{GROUP}/{VERSION}"

RESOURCE_SET_KIND = "ResourceSet"
INPUT_PROVIDER_KIND = "ResourceSetInputProvider"

RESOURCE_SET_GVK = GroupVersionKind(group=GROUP, version=VERSION, kind=RESOURCE_SET_KIND)
INPUT_PROVIDER_GVK = GroupVersionKind(group=GROUP, version=VERSION, kind=INPUT_PROVIDER_KIND)

ENABLED_VALUE = "enabled"
DISABLED_VALUE = "disabled"

FINALIZER = f"{GROUP}/finalizer"
RECONCILE_ANNOTATION = f"{GROUP}/reconcile"
RECONCILE_EVERY_ANNOTATION = f"{GROUP}/reconcileEvery"
RECONCILE_TIMEOUT_ANNOTATION = f"{GROUP}/reconcileTimeout"
PRUNE_ANNOTATION = f"{GROUP}/prune"
FORCE_ANNOTATION = f"{GROUP}/force"
COPY_FROM_ANNOTATION = f"{GROUP}/copyFrom"
SSA_ANNOTATION = f"{GROUP}/ssa"
REQUESTED_AT_ANNOTATION = "reconcile.fluxcd.io/requestedAt"

OWNER_LABEL_GROUP = f"resourceset.{GROUP}"

DEFAULT_INTERVAL = timedelta(minutes=60)
DEFAULT_TIMEOUT = timedelta(minutes=5)


class InputStrategy(StrEnum):
    FLATTEN = "Flatten"
    PERMUTE = "Permute"


@dataclass(frozen=True, slots=True)
class ObjectKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


@dataclass(slots=True, kw_only=True)
class CommonMetadata:
    labels: dict[str, str] = field(default_factory=dict["str", "str"])
    annotations: dict[str, str] = field(default_factory=dict["str", "str"])


@dataclass(slots=True, kw_only=True)
class DependencyRef:
    """A live object that must exist (and optionally be ready) before reconciling."""

    api_version: str
    kind: str
    name: str
    namespace: str = ""
    ready: bool = False
    ready_expr: str = ""

    @property
    def metadata(self) -> ObjMetadata:
        return ObjMetadata(namespace=self.namespace, name=self.name, group="", kind=self.kind)

    def __str__(self) -> str:
        return f"{self.api_version}/{fmt_metadata(self.metadata)}"


@dataclass(slots=True, kw_only=True)
class InputProviderRef:
    kind: str
    api_version: str = API_VERSION
    name: str = ""
    selector: LabelSelector | None = None


@dataclass(slots=True, kw_only=True)
class ResourceSetSpec:
    common_metadata: CommonMetadata | None = None
    inputs: list[dict[str, Any]] = field(default_factory=list["dict[str, Any]"])
    inputs_from: list[InputProviderRef] = field(default_factory=list["InputProviderRef"])
    input_strategy: str = InputStrategy.FLATTEN
    resources: list[Unstructured] = field(default_factory=list["Unstructured"])
    resources_template: str = ""
    depends_on: list[DependencyRef] = field(default_factory=list["DependencyRef"])
    service_account_name: str = ""
    wait: bool = False
    timeout: timedelta | None = None


@dataclass(slots=True, kw_only=True)
class ResourceSetStatus:
    conditions: ConditionSet = field(default_factory=ConditionSet)
    inventory: Inventory | None = None
    last_applied_revision: str = ""
    last_handled_reconcile_at: str = ""
    history: History = field(default_factory=History)


@dataclass(slots=True, kw_only=True)
class ResourceSet:
    """Root aggregate reconciled by the operator.

    The object doubles as the pseudo input provider for its inline inputs, so it
    exposes the same identity attributes and ``get_inputs`` as real providers.
    """

    name: str
    namespace: str
    uid: str = ""
    generation: int = 0
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict["str", "str"])
    annotations: dict[str, str] = field(default_factory=dict["str", "str"])
    finalizers: list[str] = field(default_factory=list["str"])
    deletion_timestamp: datetime | None = None
    spec: ResourceSetSpec = field(default_factory=ResourceSetSpec)
    status: ResourceSetStatus = field(default_factory=ResourceSetStatus)

    api_version: str = API_VERSION
    kind: str = RESOURCE_SET_KIND

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(namespace=self.namespace, name=self.name)

    @property
    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind.from_api_version(self.api_version, self.kind)

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def is_disabled(self) -> bool:
        value = self.annotations.get(RECONCILE_ANNOTATION, "")
        return value.lower() == DISABLED_VALUE

    def is_force_enabled(self) -> bool:
        return self.annotations.get(FORCE_ANNOTATION, "").lower() == ENABLED_VALUE

    def has_finalizer(self) -> bool:
        return FINALIZER in self.finalizers

    def add_finalizer(self) -> None:
        if FINALIZER not in self.finalizers:
            self.finalizers.append(FINALIZER)

    def remove_finalizer(self) -> None:
        self.finalizers = [item for item in self.finalizers if item != FINALIZER]

    @property
    def interval(self) -> timedelta:
        """Periodic reconcile interval; zero disables periodic reconciles."""

        if self.is_disabled():
            return timedelta(0)
        value = self.annotations.get(RECONCILE_EVERY_ANNOTATION)
        if value is None:
            return DEFAULT_INTERVAL
        try:
            return parse_duration(value)
        except ValueError:
            return DEFAULT_INTERVAL

    @property
    def timeout(self) -> timedelta:
        if self.spec.timeout is not None:
            return self.spec.timeout
        value = self.annotations.get(RECONCILE_TIMEOUT_ANNOTATION)
        if value is None:
            return DEFAULT_TIMEOUT
        try:
            return parse_duration(value)
        except ValueError:
            return DEFAULT_TIMEOUT

    def requested_at(self) -> str | None:
        return self.annotations.get(REQUESTED_AT_ANNOTATION)

    def get_inputs(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(item) for item in self.spec.inputs]
