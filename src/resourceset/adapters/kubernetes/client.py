"""Async access to the Kubernetes API over the resilient HTTP client."""

from __future__ import annotations

import asyncio
import threading
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from resourceset.adapters.http_resilience import ResilientClient
from resourceset.config.http_resilience import CacheConfig, RateLimit, ResilienceConfig
from resourceset.domain.ports.store import (
    ConflictError,
    ImmutableFieldError,
    NotFoundError,
    StoreError,
)

from .schema import APIResourceList, StatusPayload

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from resourceset.config.kubernetes import KubernetesConfig

log = getLogger(__name__)

APPLY_PATCH = "application/apply-patch+yaml"
MERGE_PATCH = "application/merge-patch+json"
JSON = "application/json"

DISCOVERY_TTL_SECONDS = 600.0


def default_resilience(config: KubernetesConfig) -> ResilienceConfig:
    return ResilienceConfig(
        name="kubernetes",
        base_url=config.server,
        timeout_seconds=30.0,
        ratelimit=RateLimit(max_calls=50, per_seconds=1.0),
        headers=_auth_headers(config),
        verify=config.verify,
    )


def discovery_resilience(config: KubernetesConfig) -> ResilienceConfig:
    return ResilienceConfig(
        name="kubernetes-discovery",
        base_url=config.server,
        timeout_seconds=30.0,
        cache=CacheConfig(backend="sqlite", ttl_seconds=DISCOVERY_TTL_SECONDS),
        headers=_auth_headers(config),
        verify=config.verify,
    )


def error_from_response(response: httpx.Response, context: str) -> StoreError:
    """Map a failed API response onto the store error taxonomy."""

    message = response.text
    try:
        status = StatusPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        status = None
    if status is not None and status.message:
        message = status.message

    text = f"{context}: {message}"
    code = response.status_code
    if code == httpx.codes.NOT_FOUND:
        return NotFoundError(text, status_code=code)
    if code == httpx.codes.CONFLICT:
        return ConflictError(text, status_code=code)
    if code == httpx.codes.UNPROCESSABLE_ENTITY and "field is immutable" in message:
        return ImmutableFieldError(text, status_code=code)
    return StoreError(text, status_code=code)


class KubernetesApi:
    """Thin JSON layer over two resilient clients: one for requests, one cached for discovery."""

    def __init__(
        self,
        config: KubernetesConfig,
        *,
        resilience: ResilienceConfig | None = None,
        discovery: ResilienceConfig | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = ResilientClient,
    ) -> None:
        self.config = config
        self._client = client_factory(resilience or default_resilience(config))
        self._discovery = client_factory(discovery or discovery_resilience(config))

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        content: str | None = None,
        content_type: str | None = None,
        impersonate: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Accept": JSON}
        if content_type is not None:
            headers["Content-Type"] = content_type
        if impersonate:
            headers["Impersonate-User"] = impersonate

        context = f"{method} {path}"
        try:
            response = await self._client.request(
                method, path, params=params, content=content, headers=headers
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"{context}: {exc}") from exc
        if response.is_error:
            raise error_from_response(response, context)
        if not response.content:
            return {}
        return response.json()

    async def discover(self, group_version: str) -> APIResourceList:
        path = f"/api/{group_version}" if "/" not in group_version else f"/apis/{group_version}"
        try:
            response = await self._discovery.get(path, headers={"Accept": JSON})
        except httpx.HTTPError as exc:
            raise StoreError(f"discovery of {group_version}: {exc}") from exc
        if response.is_error:
            raise error_from_response(response, f"discovery of {group_version}")
        return APIResourceList.model_validate(response.json())

    async def aclose(self) -> None:
        await self._client.aclose()
        await self._discovery.aclose()


class LoopRunner:
    """Runs an event loop on a dedicated thread so synchronous callers can await."""

    def __init__(self, name: str = "kubernetes-api") -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run[T](self, coro: Coroutine[Any, Any, T]) -> T:
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def close(self) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()


def _auth_headers(config: KubernetesConfig) -> dict[str, str]:
    if not config.token:
        return {}
    return {"Authorization": f"Bearer {config.token}"}
