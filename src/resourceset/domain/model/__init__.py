"""Public domain model surface."""

from __future__ import annotations

from resourceset.domain.model.conditions import (
    OWNED_CONDITIONS,
    READY_CONDITION,
    RECONCILING_CONDITION,
    STALLED_CONDITION,
    Condition,
    ConditionSet,
    ConditionStatus,
    Reason,
)
from resourceset.domain.model.durations import format_duration, parse_duration, round_duration
from resourceset.domain.model.objects import (
    GroupVersionKind,
    ObjMetadata,
    Unstructured,
    fmt_metadata,
    fmt_object,
)
from resourceset.domain.model.providers import ResourceSetInputProvider
from resourceset.domain.model.resourceset import (
    API_VERSION,
    GROUP,
    INPUT_PROVIDER_GVK,
    INPUT_PROVIDER_KIND,
    RESOURCE_SET_GVK,
    RESOURCE_SET_KIND,
    CommonMetadata,
    DependencyRef,
    InputProviderRef,
    InputStrategy,
    ObjectKey,
    ResourceSet,
    ResourceSetSpec,
    ResourceSetStatus,
)
from resourceset.domain.model.selectors import (
    InvalidLabelSelectorError,
    LabelSelector,
    SelectorOperator,
    SelectorRequirement,
)

__all__ = [  # noqa: RUF022
    # api
    "API_VERSION",
    "GROUP",
    "INPUT_PROVIDER_GVK",
    "INPUT_PROVIDER_KIND",
    "RESOURCE_SET_GVK",
    "RESOURCE_SET_KIND",
    # objects
    "GroupVersionKind",
    "ObjMetadata",
    "Unstructured",
    "fmt_metadata",
    "fmt_object",
    # conditions
    "OWNED_CONDITIONS",
    "READY_CONDITION",
    "RECONCILING_CONDITION",
    "STALLED_CONDITION",
    "Condition",
    "ConditionSet",
    "ConditionStatus",
    "Reason",
    # durations
    "format_duration",
    "parse_duration",
    "round_duration",
    # selectors
    "InvalidLabelSelectorError",
    "LabelSelector",
    "SelectorOperator",
    "SelectorRequirement",
    # resourceset
    "CommonMetadata",
    "DependencyRef",
    "InputProviderRef",
    "InputStrategy",
    "ObjectKey",
    "ResourceSet",
    "ResourceSetSpec",
    "ResourceSetStatus",
    "ResourceSetInputProvider",
]
