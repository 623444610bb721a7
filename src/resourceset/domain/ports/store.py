"""Ports for the declarative object store (the Kubernetes API)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from resourceset.domain.apply.changeset import Action
    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.selectors import LabelSelector


class StoreError(Exception):
    """Raised when the object store rejects or fails a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(StoreError):
    pass


class ConflictError(StoreError):
    pass


class ImmutableFieldError(StoreError):
    """The apply tried to change a field the API server treats as immutable."""


class ImpersonationError(StoreError):
    """The service account to impersonate does not exist or is not usable."""


@dataclass(slots=True, kw_only=True)
class AppliedObject:
    object: Unstructured
    action: Action


@runtime_checkable
class ObjectStore(Protocol):
    """Generic access to live objects addressed by API version, kind, namespace and name."""

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Unstructured: ...

    def list(
        self,
        api_version: str,
        kind: str,
        *,
        namespace: str = "",
        selector: LabelSelector | None = None,
    ) -> list[Unstructured]: ...

    def apply(
        self, obj: Unstructured, *, field_manager: str, force: bool = True
    ) -> AppliedObject: ...

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None: ...

    def patch(
        self,
        api_version: str,
        kind: str,
        namespace: str,
        name: str,
        patch: Mapping[str, Any],
        *,
        subresource: str | None = None,
    ) -> Unstructured:
        """Apply a JSON merge patch and return the updated object."""
        ...


@runtime_checkable
class ClientFactory(Protocol):
    """Hands out stores acting either as the operator or as a service account."""

    def scoped(self, service_account: str, namespace: str) -> ObjectStore:
        """Return a store impersonating ``service_account`` (operator identity when empty)."""
        ...

    def can_impersonate(self, service_account: str, namespace: str) -> bool: ...
