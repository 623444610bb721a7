"""Combination of provider inputs into the records handed to the builder."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from resourceset.domain.errors import InvalidInputStrategyError
from resourceset.domain.model.objects import GroupVersionKind
from resourceset.domain.model.resourceset import InputStrategy

from .ids import ID_KEY, PROVIDER_KEY, input_id
from .permuter import Permuter

if TYPE_CHECKING:
    from collections.abc import Mapping

    from resourceset.domain.model.resourceset import ResourceSet
    from resourceset.domain.ports.codec import InputProvider

type CombinedInput = dict[str, Any]


@dataclass(frozen=True, slots=True, order=True)
class ProviderKey:
    """Identity of a resolved provider; the sort order defines combination order."""

    group: str
    version: str
    kind: str
    namespace: str
    name: str

    @classmethod
    def of(cls, provider: InputProvider) -> ProviderKey:
        gvk = GroupVersionKind.from_api_version(provider.api_version, provider.kind)
        return cls(
            group=gvk.group,
            version=gvk.version,
            kind=gvk.kind,
            namespace=provider.namespace,
            name=provider.name,
        )


def provider_reference(provider: InputProvider) -> dict[str, str]:
    return {
        "apiVersion": provider.api_version,
        "kind": provider.kind,
        "name": provider.name,
        "namespace": provider.namespace,
    }


def tag_inputs(provider: InputProvider) -> list[CombinedInput]:
    """Return the provider's records with ``provider`` and a stable ``id`` injected."""

    reference = provider_reference(provider)
    identity = "/".join(
        (provider.api_version, provider.kind, provider.namespace, provider.name)
    )
    records: list[CombinedInput] = []
    for index, exported in enumerate(provider.get_inputs()):
        record = copy.deepcopy(dict(exported))
        if not record.get(ID_KEY):
            record[ID_KEY] = input_id(f"{identity}/{index}")
        record[PROVIDER_KEY] = dict(reference)
        records.append(record)
    return records


def ordered_providers(
    resource_set: ResourceSet, providers: Mapping[ProviderKey, InputProvider]
) -> list[InputProvider]:
    """Inline inputs first, then the resolved providers sorted by key."""

    ordered: list[InputProvider] = [resource_set]
    ordered.extend(providers[key] for key in sorted(providers))
    return ordered


def combine(
    resource_set: ResourceSet, providers: Mapping[ProviderKey, InputProvider]
) -> list[CombinedInput]:
    """Combine inline and provider inputs according to the input strategy."""

    strategy = resource_set.spec.input_strategy or InputStrategy.FLATTEN
    try:
        strategy = InputStrategy(strategy)
    except ValueError:
        raise InvalidInputStrategyError(str(strategy)) from None

    match strategy:
        case InputStrategy.FLATTEN:
            return flatten(resource_set, providers)
        case InputStrategy.PERMUTE:
            return permute(resource_set, providers)


def flatten(
    resource_set: ResourceSet, providers: Mapping[ProviderKey, InputProvider]
) -> list[CombinedInput]:
    combined: list[CombinedInput] = []
    for provider in ordered_providers(resource_set, providers):
        combined.extend(tag_inputs(provider))
    return combined


def permute(
    resource_set: ResourceSet, providers: Mapping[ProviderKey, InputProvider]
) -> list[CombinedInput]:
    permuter = Permuter()
    for provider in ordered_providers(resource_set, providers):
        permuter.add_provider(provider.name, tag_inputs(provider))
    return permuter.combine()
