"""Ports translating stored objects into domain aggregates and back."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.resourceset import ResourceSet


@runtime_checkable
class InputProvider(Protocol):
    """Anything that exports input records; the ResourceSet itself is one."""

    api_version: str
    kind: str
    name: str
    namespace: str

    def get_inputs(self) -> list[dict[str, Any]]: ...


type ProviderDecoder = Callable[[Unstructured], InputProvider]


@runtime_checkable
class ResourceSetCodec(Protocol):
    def decode(self, obj: Unstructured) -> ResourceSet: ...

    def encode(self, resource_set: ResourceSet) -> Unstructured:
        """Encode metadata (including finalizers) and status; ``spec`` is never written."""
        ...
