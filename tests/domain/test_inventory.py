from __future__ import annotations

from resourceset.domain.apply.changeset import Action, ChangeSet, ChangeSetEntry
from resourceset.domain.inventory import Inventory, ResourceRef, diff_inventories
from tests.support.resourcesets import config_map


def _deployment(name: str) -> dict[str, object]:
    return {"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": name, "namespace": "apps"}}


def test_inventory_from_objects_is_sorted_and_deduplicated() -> None:
    objects = [_deployment("web"), config_map("settings", "apps"), _deployment("web")]

    inventory = Inventory.from_objects(objects)

    assert [entry.id for entry in inventory] == [
        "apps_settings__ConfigMap",
        "apps_web_apps_Deployment",
    ]
    assert [entry.version for entry in inventory] == ["v1", "v1"]


def test_inventory_from_change_set_keeps_applied_version() -> None:
    change_set = ChangeSet()
    change_set.add(ChangeSetEntry.for_object(_deployment("web"), Action.CREATED))
    change_set.add(ChangeSetEntry.for_object(config_map("settings", "apps"), Action.UNCHANGED))

    inventory = Inventory.from_change_set(change_set)

    assert "apps_web_apps_Deployment" in inventory
    assert ResourceRef(id="apps_settings__ConfigMap", version="v1") in inventory


def test_diff_returns_skeletons_of_stale_entries() -> None:
    old = Inventory.from_objects([_deployment("web"), _deployment("api"), config_map("settings", "apps")])
    new = Inventory.from_objects([_deployment("web")])

    stale = diff_inventories(old, new)

    assert stale == [
        {"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": "api", "namespace": "apps"}},
        {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "settings", "namespace": "apps"}},
    ]


def test_diff_without_previous_inventory_is_empty() -> None:
    assert diff_inventories(None, Inventory.from_objects([_deployment("web")])) == []


def test_cluster_scoped_skeleton_has_no_namespace() -> None:
    ref = ResourceRef(id="_team1__Namespace", version="v1")

    assert ref.to_object() == {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "team1"}}
