"""httpx client used for every call to the Kubernetes API.

Requests go through a ``RetryTransport`` and, when configured, an
``AsyncLimiter``. A client with a ``CacheConfig`` stores successful responses in
hishel; only the discovery client is set up that way.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as CachedResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from resourceset.config.storage import get_storage_config

if TYPE_CHECKING:
    from resourceset.config.http_resilience import CacheConfig, ResilienceConfig, RetryPolicy

log = getLogger(__name__)


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        backoff_jitter=policy.backoff_jitter,
        respect_retry_after_header=True,
        allowed_methods=sorted(policy.methods),
        status_forcelist=sorted(policy.statuses),
        retry_on_exceptions=policy.exceptions,
    )


class ResilientClient:
    """One configured ``httpx.AsyncClient`` plus its optional rate limiter."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        transport = RetryTransport(
            transport=httpx.AsyncHTTPTransport(verify=config.verify),
            retry=build_retry(config.retry),
        )
        self._client = self._open(config, transport)

    @staticmethod
    def _open(config: ResilienceConfig, transport: httpx.AsyncBaseTransport) -> httpx.AsyncClient:
        base_url = config.base_url or ""
        headers = dict(config.headers or {})
        if config.cache is None:
            return httpx.AsyncClient(
                base_url=base_url, headers=headers, timeout=config.timeout_seconds, transport=transport
            )

        storage = open_cache_storage(config.cache, endpoint=base_url or config.name)
        log.debug("HTTP client %s caches responses (%s)", config.name, config.cache.backend)
        return AsyncCacheClient(
            base_url=base_url,
            headers=headers,
            timeout=config.timeout_seconds,
            transport=transport,
            storage=storage,
            policy=FilterPolicy(response_filters=[_SuccessOnly()]),
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        content: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        if self._limiter is None:
            return await self._client.request(method, url, params=params, content=content, headers=headers)
        async with self._limiter:
            return await self._client.request(method, url, params=params, content=content, headers=headers)

    async def get(self, url: str, *, headers: dict[str, str] | None = None) -> httpx.Response:
        return await self.request("GET", url, headers=headers)

    async def aclose(self) -> None:
        await self._client.aclose()


class _SuccessOnly(BaseFilter[CachedResponse]):
    """Only 2xx responses are cached."""

    def needs_body(self) -> bool:
        return False

    def apply(self, item: CachedResponse, body: bytes | None) -> bool:  # noqa: ARG002
        return httpx.codes.is_success(item.status_code)


def open_cache_storage(config: CacheConfig, *, endpoint: str) -> AsyncSqliteStorage:
    if config.backend == "memory":
        database_path = ":memory:"
    elif config.backend == "sqlite":
        database_path = str(config.path or get_storage_config().http_cache_path(endpoint))
    else:
        msg = f"Unsupported cache backend: {config.backend}"
        raise ValueError(msg)
    return AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )
