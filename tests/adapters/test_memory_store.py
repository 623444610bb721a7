from __future__ import annotations

import pytest

from resourceset.adapters.memory import MemoryClientFactory, MemoryObjectStore
from resourceset.domain.apply.changeset import Action
from resourceset.domain.model.selectors import LabelSelector
from resourceset.domain.ports.store import (
    ImmutableFieldError,
    ImpersonationError,
    NotFoundError,
    StoreError,
)
from tests.support.resourcesets import config_map


def _deployment(selector: str, replicas: int = 1) -> dict[str, object]:
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "web", "namespace": "apps"},
        "spec": {"replicas": replicas, "selector": {"matchLabels": {"app": selector}}},
    }


def test_apply_reports_created_configured_unchanged(store: MemoryObjectStore) -> None:
    created = store.apply(config_map("app", data={"a": "1"}), field_manager="test")
    unchanged = store.apply(config_map("app", data={"a": "1"}), field_manager="test")
    configured = store.apply(config_map("app", data={"a": "2"}), field_manager="test")

    assert created.action is Action.CREATED
    assert unchanged.action is Action.UNCHANGED
    assert configured.action is Action.CONFIGURED
    assert store.get("v1", "ConfigMap", "default", "app")["data"] == {"a": "2"}
    assert created.object["metadata"]["managedFields"] == [{"manager": "test", "operation": "Apply"}]


def test_spec_changes_bump_generation(store: MemoryObjectStore) -> None:
    store.apply(_deployment("web"), field_manager="test")
    store.apply(_deployment("web", replicas=3), field_manager="test")

    assert store.get("apps/v1", "Deployment", "apps", "web")["metadata"]["generation"] == 2


def test_immutable_fields_are_rejected(store: MemoryObjectStore) -> None:
    store.apply(_deployment("web"), field_manager="test")

    with pytest.raises(ImmutableFieldError, match="spec.selector: field is immutable"):
        store.apply(_deployment("api"), field_manager="test")


def test_labels_are_merged_on_apply(store: MemoryObjectStore) -> None:
    store.add(config_map("app", labels={"kept": "yes"}))

    store.apply(config_map("app", labels={"added": "yes"}), field_manager="test")

    assert store.get("v1", "ConfigMap", "default", "app")["metadata"]["labels"] == {"kept": "yes", "added": "yes"}


def test_list_filters_by_namespace_and_selector(store: MemoryObjectStore) -> None:
    store.add(
        config_map("a", labels={"role": "x"}),
        config_map("b", labels={"role": "y"}),
        config_map("c", "other", labels={"role": "x"}),
    )

    names = [obj["metadata"]["name"] for obj in store.list("v1", "ConfigMap", selector=LabelSelector(match_labels={"role": "x"}))]
    scoped = [obj["metadata"]["name"] for obj in store.list("v1", "ConfigMap", namespace="default")]

    assert names == ["a", "c"]
    assert scoped == ["a", "b"]


def test_finalizers_block_deletion_until_released(store: MemoryObjectStore) -> None:
    obj = config_map("app")
    obj["metadata"]["finalizers"] = ["example.com/cleanup"]
    store.add(obj)

    store.delete("v1", "ConfigMap", "default", "app")
    assert store.get("v1", "ConfigMap", "default", "app")["metadata"]["deletionTimestamp"]

    store.patch("v1", "ConfigMap", "default", "app", {"metadata": {"finalizers": None}})
    assert not store.exists("v1", "ConfigMap", "default", "app")


def test_status_patch_only_touches_status(store: MemoryObjectStore) -> None:
    store.add(config_map("app", data={"a": "1"}))

    store.patch("v1", "ConfigMap", "default", "app", {"status": {"phase": "Ready"}, "data": {"a": "2"}}, subresource="status")

    stored = store.get("v1", "ConfigMap", "default", "app")
    assert stored["status"] == {"phase": "Ready"}
    assert stored["data"] == {"a": "1"}


def test_missing_objects_raise_not_found(store: MemoryObjectStore) -> None:
    with pytest.raises(NotFoundError):
        store.get("v1", "ConfigMap", "default", "absent")
    with pytest.raises(NotFoundError):
        store.delete("v1", "ConfigMap", "default", "absent")


def test_injected_failures(store: MemoryObjectStore) -> None:
    store.add(config_map("app"))
    store.fail("get", "ConfigMap", "default", "app", StoreError("boom"), times=1)

    with pytest.raises(StoreError, match="boom"):
        store.get("v1", "ConfigMap", "default", "app")
    assert store.get("v1", "ConfigMap", "default", "app")["metadata"]["name"] == "app"


def test_definitions_are_seeded_with_status(store: MemoryObjectStore) -> None:
    store.apply({"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "apps"}}, field_manager="test")

    assert store.get("v1", "Namespace", "", "apps")["status"] == {"phase": "Active"}


def test_client_factory_requires_service_account(store: MemoryObjectStore) -> None:
    clients = MemoryClientFactory(store)

    assert clients.scoped("", "default") is store
    assert not clients.can_impersonate("deployer", "default")
    with pytest.raises(ImpersonationError, match="ServiceAccount/default/deployer not found"):
        clients.scoped("deployer", "default")

    store.add({"apiVersion": "v1", "kind": "ServiceAccount", "metadata": {"name": "deployer", "namespace": "default"}})
    assert clients.scoped("deployer", "default") is store
