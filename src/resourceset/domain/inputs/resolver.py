"""Resolution of ``inputsFrom`` references into provider objects."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from resourceset.domain.errors import (
    InputResolutionError,
    InvalidProviderReferenceError,
    InvalidSelectorError,
)
from resourceset.domain.model.objects import GroupVersionKind
from resourceset.domain.model.selectors import InvalidLabelSelectorError
from resourceset.domain.ports.store import StoreError

from .combine import CombinedInput, ProviderKey, combine

if TYPE_CHECKING:
    from collections.abc import Mapping

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.resourceset import InputProviderRef, ResourceSet
    from resourceset.domain.ports.codec import InputProvider, ProviderDecoder
    from resourceset.domain.ports.store import ObjectStore


log = getLogger(__name__)


class InputResolver:
    """Fetches the providers referenced by a ResourceSet and combines their inputs.

    ``decoders`` maps a provider kind to the callable turning the stored object
    into an ``InputProvider``. Adding a provider kind means registering a
    decoder, never touching the resolver.
    """

    def __init__(self, store: ObjectStore, decoders: Mapping[str, ProviderDecoder]) -> None:
        self._store = store
        self._decoders = dict(decoders)

    def resolve(self, resource_set: ResourceSet) -> dict[ProviderKey, InputProvider]:
        providers: dict[ProviderKey, InputProvider] = {}
        for ref in resource_set.spec.inputs_from:
            decoder = self._decoder_for(ref)
            gvk = GroupVersionKind.from_api_version(ref.api_version, ref.kind)

            if ref.name and ref.selector is not None:
                raise InvalidProviderReferenceError(
                    f"input provider reference {ref.kind} must set either name or selector, not both"
                )

            if ref.name:
                key = ProviderKey(
                    group=gvk.group,
                    version=gvk.version,
                    kind=gvk.kind,
                    namespace=resource_set.namespace,
                    name=ref.name,
                )
                if key in providers:
                    continue
                obj = self._fetch(ref, resource_set.namespace)
                providers[key] = decoder(obj)
                continue

            if ref.selector is None:
                raise InvalidProviderReferenceError(
                    f"input provider reference {ref.kind} must set either name or selector"
                )

            for obj in self._list(ref, resource_set.namespace):
                provider = decoder(obj)
                key = ProviderKey.of(provider)
                if key not in providers:
                    providers[key] = provider

        return providers

    def combined_inputs(self, resource_set: ResourceSet) -> list[CombinedInput]:
        return combine(resource_set, self.resolve(resource_set))

    def _decoder_for(self, ref: InputProviderRef) -> ProviderDecoder:
        try:
            return self._decoders[ref.kind]
        except KeyError:
            raise InvalidProviderReferenceError(
                f"unsupported input provider kind '{ref.kind}'"
            ) from None

    def _fetch(self, ref: InputProviderRef, namespace: str) -> Unstructured:
        try:
            return self._store.get(ref.api_version, ref.kind, namespace, ref.name)
        except StoreError as exc:
            raise InputResolutionError(
                f"failed to get input provider {ref.kind}/{namespace}/{ref.name}: {exc}"
            ) from exc

    def _list(self, ref: InputProviderRef, namespace: str) -> list[Unstructured]:
        assert ref.selector is not None
        try:
            ref.selector.validate()
        except InvalidLabelSelectorError as exc:
            raise InvalidSelectorError(
                f"failed to parse selector for input provider {ref.kind}: {exc}"
            ) from exc
        try:
            objects = self._store.list(
                ref.api_version, ref.kind, namespace=namespace, selector=ref.selector
            )
        except StoreError as exc:
            raise InputResolutionError(
                f"failed to list input providers {ref.kind} in namespace {namespace}: {exc}"
            ) from exc
        log.debug(
            "Selector '%s' matched %d %s object(s) in %s", ref.selector, len(objects), ref.kind, namespace
        )
        return objects
