"""Mapping of API version and kind to REST resources."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from resourceset.domain.model.objects import split_api_version
from resourceset.domain.ports.store import NotFoundError

if TYPE_CHECKING:
    from .client import KubernetesApi

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResourceInfo:
    api_version: str
    plural: str
    namespaced: bool

    def path(self, namespace: str = "", name: str = "", subresource: str = "") -> str:
        group, version = split_api_version(self.api_version)
        parts = [f"/apis/{group}/{version}" if group else f"/api/{version}"]
        if self.namespaced and namespace:
            parts.append(f"namespaces/{namespace}")
        parts.append(self.plural)
        if name:
            parts.append(name)
        if subresource:
            parts.append(subresource)
        return "/".join(parts)


class ResourceMapper:
    """Caches discovery results per API version; misses trigger one refresh."""

    def __init__(self, api: KubernetesApi) -> None:
        self._api = api
        self._known: dict[tuple[str, str], ResourceInfo] = {}
        self._lock = asyncio.Lock()

    async def resolve(self, api_version: str, kind: str) -> ResourceInfo:
        info = self._known.get((api_version, kind))
        if info is not None:
            return info
        async with self._lock:
            info = self._known.get((api_version, kind))
            if info is None:
                await self._refresh(api_version)
                info = self._known.get((api_version, kind))
        if info is None:
            raise NotFoundError(
                f"no matches for kind '{kind}' in version '{api_version}'", status_code=404
            )
        return info

    def invalidate(self, api_version: str) -> None:
        for key in [key for key in self._known if key[0] == api_version]:
            del self._known[key]

    async def _refresh(self, api_version: str) -> None:
        resources = await self._api.discover(api_version)
        for resource in resources.resources:
            if resource.is_subresource:
                continue
            self._known[(api_version, resource.kind)] = ResourceInfo(
                api_version=api_version, plural=resource.name, namespaced=resource.namespaced
            )
        log.debug("Discovered %d resources in %s", len(resources.resources), api_version)
