from __future__ import annotations

import pytest

from resourceset.adapters.kubernetes import (
    KubernetesClientFactory,
    LoopRunner,
    ResourceMapper,
    service_account_user,
)
from resourceset.domain.apply.changeset import Action
from resourceset.domain.model.selectors import LabelSelector
from resourceset.domain.ports.store import ImpersonationError, NotFoundError
from tests.support.kubernetes import FakeServer, fake_api
from tests.support.resourcesets import config_map

CONFIG_MAP_PATH = "/api/v1/namespaces/default/configmaps/app"


@pytest.fixture
def clients(server: FakeServer, runner: LoopRunner) -> KubernetesClientFactory:
    api = fake_api(server)
    return KubernetesClientFactory(api, ResourceMapper(api), runner)


def test_service_account_user() -> None:
    assert service_account_user("deployer", "apps") == "system:serviceaccount:apps:deployer"


def test_apply_uses_server_side_apply(server: FakeServer, clients: KubernetesClientFactory) -> None:
    applied = clients.operator.apply(config_map("app", data={"a": "1"}), field_manager="flux-operator")

    assert applied.action is Action.CREATED
    call = server.calls[-1]
    assert call.method == "PATCH"
    assert call.path == CONFIG_MAP_PATH
    assert call.params == {"fieldManager": "flux-operator", "force": "true"}
    assert call.headers["Content-Type"] == "application/apply-patch+yaml"
    assert call.body["data"] == {"a": "1"}


def test_apply_detects_configured_objects(server: FakeServer, clients: KubernetesClientFactory) -> None:
    clients.operator.apply(config_map("app", data={"a": "1"}), field_manager="flux-operator")

    applied = clients.operator.apply(config_map("app", data={"a": "2"}), field_manager="flux-operator")

    assert applied.action is Action.CONFIGURED
    assert server.objects[CONFIG_MAP_PATH]["data"] == {"a": "2"}


def test_get_and_delete(server: FakeServer, clients: KubernetesClientFactory) -> None:
    server.objects[CONFIG_MAP_PATH] = config_map("app")

    assert clients.operator.get("v1", "ConfigMap", "default", "app")["metadata"]["name"] == "app"
    clients.operator.delete("v1", "ConfigMap", "default", "app")

    assert server.calls[-1].body == {"propagationPolicy": "Background"}
    with pytest.raises(NotFoundError):
        clients.operator.get("v1", "ConfigMap", "default", "app")


def test_list_passes_selector_and_fills_type_meta(server: FakeServer, clients: KubernetesClientFactory) -> None:
    server.objects[CONFIG_MAP_PATH] = {"metadata": {"name": "app", "namespace": "default"}}

    items = clients.operator.list("v1", "ConfigMap", namespace="default", selector=LabelSelector(match_labels={"role": "x"}))

    assert server.calls[-1].params == {"labelSelector": "role=x"}
    assert items == [{"metadata": {"name": "app", "namespace": "default"}, "apiVersion": "v1", "kind": "ConfigMap"}]


def test_status_patch_targets_subresource(server: FakeServer, clients: KubernetesClientFactory) -> None:
    server.objects["/api/v1/namespaces/apps"] = {"metadata": {"name": "apps"}, "status": {"phase": "Pending"}}

    patched = clients.operator.patch("v1", "Namespace", "", "apps", {"status": {"phase": "Active"}}, subresource="status")

    call = server.calls[-1]
    assert call.path == "/api/v1/namespaces/apps/status"
    assert call.headers["Content-Type"] == "application/merge-patch+json"
    assert patched["status"] == {"phase": "Active"}


def test_scoped_clients_impersonate_service_accounts(server: FakeServer, clients: KubernetesClientFactory) -> None:
    assert clients.scoped("", "default") is clients.operator
    with pytest.raises(ImpersonationError, match="ServiceAccount/default/deployer not found"):
        clients.scoped("deployer", "default")

    server.objects["/api/v1/namespaces/default/serviceaccounts/deployer"] = {"metadata": {"name": "deployer"}}
    scoped = clients.scoped("deployer", "default")
    scoped.apply(config_map("app"), field_manager="flux-operator")

    assert scoped.impersonate == "system:serviceaccount:default:deployer"
    assert server.calls[-1].headers["Impersonate-User"] == "system:serviceaccount:default:deployer"
