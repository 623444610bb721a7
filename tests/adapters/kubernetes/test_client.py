from __future__ import annotations

import httpx
import pytest

from resourceset.adapters.kubernetes import (
    KubernetesApi,
    LoopRunner,
    ResourceInfo,
    ResourceMapper,
    error_from_response,
)
from resourceset.config import KubernetesConfig, ResilienceConfig
from resourceset.domain.ports.store import ConflictError, ImmutableFieldError, NotFoundError, StoreError
from tests.support.kubernetes import FakeHttpClient, FakeServer, fake_api


def _status(code: int, message: str) -> httpx.Response:
    return httpx.Response(code, json={"kind": "Status", "status": "Failure", "message": message, "code": code})


def test_error_from_response_maps_status_codes() -> None:
    assert isinstance(error_from_response(_status(404, "gone"), "GET /x"), NotFoundError)
    assert isinstance(error_from_response(_status(409, "conflict"), "GET /x"), ConflictError)
    assert isinstance(
        error_from_response(_status(422, "spec.selector: field is immutable"), "PATCH /x"), ImmutableFieldError
    )

    error = error_from_response(_status(422, "bad value"), "PATCH /x")
    assert type(error) is StoreError
    assert str(error) == "PATCH /x: bad value"
    assert error.status_code == 422


def test_error_from_response_falls_back_to_body_text() -> None:
    error = error_from_response(httpx.Response(500, text="upstream exploded"), "GET /x")

    assert str(error) == "GET /x: upstream exploded"


def test_resource_paths() -> None:
    core = ResourceInfo(api_version="v1", plural="configmaps", namespaced=True)
    grouped = ResourceInfo(api_version="apps/v1", plural="deployments", namespaced=True)
    cluster = ResourceInfo(api_version="v1", plural="namespaces", namespaced=False)

    assert core.path("default", "app") == "/api/v1/namespaces/default/configmaps/app"
    assert core.path() == "/api/v1/configmaps"
    assert grouped.path("apps", "web", "status") == "/apis/apps/v1/namespaces/apps/deployments/web/status"
    assert cluster.path("ignored", "apps") == "/api/v1/namespaces/apps"


def test_request_sends_impersonation_header(server: FakeServer, runner: LoopRunner) -> None:
    api = fake_api(server)
    server.objects["/api/v1/namespaces/default/configmaps/app"] = {"metadata": {"name": "app"}}

    payload = runner.run(api.request("GET", "/api/v1/namespaces/default/configmaps/app", impersonate="system:serviceaccount:default:deployer"))

    assert payload == {"metadata": {"name": "app"}}
    call = server.calls[-1]
    assert call.headers["Impersonate-User"] == "system:serviceaccount:default:deployer"
    assert api.config.server == "https://kube.example:6443"


def test_request_raises_mapped_errors(server: FakeServer, runner: LoopRunner) -> None:
    api = fake_api(server)

    with pytest.raises(NotFoundError, match="GET /api/v1/namespaces/default/configmaps/absent"):
        runner.run(api.request("GET", "/api/v1/namespaces/default/configmaps/absent"))


def test_mapper_discovers_once_and_skips_subresources(server: FakeServer, runner: LoopRunner) -> None:
    mapper = ResourceMapper(fake_api(server))

    info = runner.run(mapper.resolve("v1", "Namespace"))
    runner.run(mapper.resolve("v1", "ConfigMap"))

    assert info == ResourceInfo(api_version="v1", plural="namespaces", namespaced=False)
    assert [call.path for call in server.calls] == ["/api/v1"]


def test_mapper_reports_unknown_kinds(server: FakeServer, runner: LoopRunner) -> None:
    mapper = ResourceMapper(fake_api(server))

    with pytest.raises(NotFoundError, match="no matches for kind 'Widget'"):
        runner.run(mapper.resolve("v1", "Widget"))


def test_aclose_closes_both_clients(server: FakeServer, runner: LoopRunner) -> None:
    clients: list[FakeHttpClient] = []

    def factory(config: ResilienceConfig) -> FakeHttpClient:
        client = FakeHttpClient(server, config)
        clients.append(client)
        return client

    api = KubernetesApi(KubernetesConfig(server="https://kube.example"), client_factory=factory)  # pyright: ignore[reportArgumentType]
    runner.run(api.aclose())

    assert [client.closed for client in clients] == [True, True]
    assert [client.config.name for client in clients] == ["kubernetes", "kubernetes-discovery"]
