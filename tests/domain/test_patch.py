from __future__ import annotations

from resourceset.adapters.crd import CrdCodec
from resourceset.adapters.memory import MemoryObjectStore
from resourceset.domain.model.conditions import READY_CONDITION, Reason
from resourceset.domain.model.resourceset import API_VERSION, FINALIZER, RESOURCE_SET_KIND
from resourceset.domain.patch import SerialPatcher, apply_merge_patch, create_merge_patch
from tests.support.resourcesets import resource_set_manifest


def test_merge_patch_round_trip() -> None:
    before = {"a": 1, "b": {"c": 2, "d": 3}, "e": [1, 2]}
    after = {"a": 1, "b": {"c": 5}, "e": [1], "f": "new"}

    patch = create_merge_patch(before, after)

    assert patch == {"b": {"c": 5, "d": None}, "e": [1], "f": "new"}
    assert apply_merge_patch(before, patch) == after


def test_merge_patch_of_identical_documents_is_empty() -> None:
    assert create_merge_patch({"a": {"b": 1}}, {"a": {"b": 1}}) == {}


def test_serial_patcher_only_sends_changes(store: MemoryObjectStore) -> None:
    store.add(resource_set_manifest())
    codec = CrdCodec()
    resource_set = codec.decode(store.get(API_VERSION, RESOURCE_SET_KIND, "default", "test"))
    patcher = SerialPatcher(store, codec, resource_set)

    resource_set.add_finalizer()
    resource_set.status.conditions.mark_true(READY_CONDITION, Reason.RECONCILIATION_SUCCEEDED, "done")
    patcher.patch(resource_set)

    stored = store.get(API_VERSION, RESOURCE_SET_KIND, "default", "test")
    assert stored["metadata"]["finalizers"] == [FINALIZER]
    assert stored["status"]["conditions"][0]["reason"] == "ReconciliationSucceeded"
    assert stored["spec"] == resource_set_manifest()["spec"]

    version = stored["metadata"]["resourceVersion"]
    patcher.patch(resource_set)
    assert store.get(API_VERSION, RESOURCE_SET_KIND, "default", "test")["metadata"]["resourceVersion"] == version
    assert patcher.snapshot["metadata"]["finalizers"] == [FINALIZER]


def test_serial_patcher_preserves_concurrent_status_fields(store: MemoryObjectStore) -> None:
    store.add(resource_set_manifest())
    codec = CrdCodec()
    resource_set = codec.decode(store.get(API_VERSION, RESOURCE_SET_KIND, "default", "test"))
    patcher = SerialPatcher(store, codec, resource_set)
    store.patch(
        API_VERSION, RESOURCE_SET_KIND, "default", "test", {"status": {"foreign": "value"}}, subresource="status"
    )

    resource_set.status.last_applied_revision = "sha256:abc"
    patcher.patch(resource_set)

    status = store.get(API_VERSION, RESOURCE_SET_KIND, "default", "test")["status"]
    assert status == {"foreign": "value", "lastAppliedRevision": "sha256:abc"}
