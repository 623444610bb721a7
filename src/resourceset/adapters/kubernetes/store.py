"""``ObjectStore`` and ``ClientFactory`` backed by the Kubernetes API."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any

from resourceset.domain.apply.changeset import Action
from resourceset.domain.model.objects import (
    api_version_of,
    get_nested,
    kind_of,
    name_of,
    namespace_of,
)
from resourceset.domain.ports.store import AppliedObject, ImpersonationError, NotFoundError

from .client import APPLY_PATCH, JSON, MERGE_PATCH
from .schema import ObjectList

if TYPE_CHECKING:
    from collections.abc import Mapping

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.selectors import LabelSelector

    from .client import KubernetesApi, LoopRunner
    from .discovery import ResourceInfo, ResourceMapper

log = getLogger(__name__)


def service_account_user(service_account: str, namespace: str) -> str:
    return f"system:serviceaccount:{namespace}:{service_account}"


class KubernetesObjectStore:
    """Synchronous facade; every call is awaited on the shared API event loop."""

    def __init__(
        self,
        api: KubernetesApi,
        mapper: ResourceMapper,
        runner: LoopRunner,
        *,
        impersonate: str | None = None,
    ) -> None:
        self._api = api
        self._mapper = mapper
        self._runner = runner
        self.impersonate = impersonate

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Unstructured:
        return self._runner.run(self._get(api_version, kind, namespace, name))

    def list(
        self,
        api_version: str,
        kind: str,
        *,
        namespace: str = "",
        selector: LabelSelector | None = None,
    ) -> list[Unstructured]:
        return self._runner.run(self._list(api_version, kind, namespace, selector))

    def apply(self, obj: Unstructured, *, field_manager: str, force: bool = True) -> AppliedObject:
        return self._runner.run(self._apply(obj, field_manager, force))

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        self._runner.run(self._delete(api_version, kind, namespace, name))

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
        return self._runner.run(
            self._patch(api_version, kind, namespace, name, patch, subresource or "")
        )

    async def _info(self, api_version: str, kind: str) -> ResourceInfo:
        return await self._mapper.resolve(api_version, kind)

    async def _get(self, api_version: str, kind: str, namespace: str, name: str) -> Unstructured:
        info = await self._info(api_version, kind)
        return await self._api.request(
            "GET", info.path(namespace, name), impersonate=self.impersonate
        )

    async def _list(
        self, api_version: str, kind: str, namespace: str, selector: LabelSelector | None
    ) -> list[Unstructured]:
        info = await self._info(api_version, kind)
        params: dict[str, str] = {}
        if selector is not None and not selector.is_empty():
            params["labelSelector"] = str(selector)
        payload = await self._api.request(
            "GET", info.path(namespace), params=params or None, impersonate=self.impersonate
        )
        items = ObjectList.model_validate(payload).items
        for item in items:
            item.setdefault("apiVersion", api_version)
            item.setdefault("kind", kind)
        return items

    async def _apply(self, obj: Unstructured, field_manager: str, force: bool) -> AppliedObject:
        api_version, kind = api_version_of(obj), kind_of(obj)
        namespace, name = namespace_of(obj), name_of(obj)
        info = await self._info(api_version, kind)
        try:
            existing = await self._get(api_version, kind, namespace, name)
        except NotFoundError:
            existing = None

        applied = await self._api.request(
            "PATCH",
            info.path(namespace, name),
            params={"fieldManager": field_manager, "force": "true" if force else "false"},
            content=json.dumps(obj),
            content_type=APPLY_PATCH,
            impersonate=self.impersonate,
        )

        if existing is None:
            action = Action.CREATED
        elif _resource_version(existing) != _resource_version(applied):
            action = Action.CONFIGURED
        else:
            action = Action.UNCHANGED
        return AppliedObject(object=applied, action=action)

    async def _delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        info = await self._info(api_version, kind)
        await self._api.request(
            "DELETE",
            info.path(namespace, name),
            content=json.dumps({"propagationPolicy": "Background"}),
            content_type=JSON,
            impersonate=self.impersonate,
        )

    async def _patch(
        self,
        api_version: str,
        kind: str,
        namespace: str,
        name: str,
        patch: Mapping[str, Any],
        subresource: str,
    ) -> Unstructured:
        info = await self._info(api_version, kind)
        return await self._api.request(
            "PATCH",
            info.path(namespace, name, subresource),
            content=json.dumps(dict(patch)),
            content_type=MERGE_PATCH,
            impersonate=self.impersonate,
        )


class KubernetesClientFactory:
    def __init__(self, api: KubernetesApi, mapper: ResourceMapper, runner: LoopRunner) -> None:
        self._api = api
        self._mapper = mapper
        self._runner = runner
        self.operator = KubernetesObjectStore(api, mapper, runner)

    def scoped(self, service_account: str, namespace: str) -> KubernetesObjectStore:
        if not service_account:
            return self.operator
        if not self.can_impersonate(service_account, namespace):
            raise ImpersonationError(
                f"ServiceAccount/{namespace}/{service_account} not found", status_code=404
            )
        return KubernetesObjectStore(
            self._api,
            self._mapper,
            self._runner,
            impersonate=service_account_user(service_account, namespace),
        )

    def can_impersonate(self, service_account: str, namespace: str) -> bool:
        if not service_account:
            return True
        try:
            self.operator.get("v1", "ServiceAccount", namespace, service_account)
        except NotFoundError:
            return False
        return True


def _resource_version(obj: Mapping[str, Any]) -> str:
    return str(get_nested(obj, "metadata", "resourceVersion", default="") or "")
