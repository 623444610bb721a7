from __future__ import annotations

from resourceset.domain.readiness import Status, compute_status


def _deployment(replicas: int, **status: object) -> dict[str, object]:
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "web", "namespace": "apps", "generation": 2},
        "spec": {"replicas": replicas},
        "status": {"observedGeneration": 2, **status},
    }


def test_deployment_is_current_when_all_replicas_are_available() -> None:
    obj = _deployment(2, updatedReplicas=2, readyReplicas=2, availableReplicas=2)

    assert compute_status(obj).status is Status.CURRENT


def test_deployment_is_in_progress_until_replicas_are_ready() -> None:
    result = compute_status(_deployment(3, updatedReplicas=3, readyReplicas=1, availableReplicas=1))

    assert result.status is Status.IN_PROGRESS
    assert result.message == "readyReplicas: 1/3"


def _replica_set(desired: int, **status: object) -> dict[str, object]:
    return {
        "apiVersion": "apps/v1",
        "kind": "ReplicaSet",
        "metadata": {"name": "web-5d4f8", "namespace": "apps", "generation": 1},
        "spec": {"replicas": desired},
        "status": {"observedGeneration": 1, **status},
    }


def test_ready_replica_set_is_current_without_updated_replicas() -> None:
    obj = _replica_set(2, replicas=2, fullyLabeledReplicas=2, readyReplicas=2, availableReplicas=2)

    assert compute_status(obj).status is Status.CURRENT


def test_replica_set_waits_for_available_and_surplus_pods() -> None:
    scaling_up = compute_status(_replica_set(2, replicas=2, fullyLabeledReplicas=2, readyReplicas=2, availableReplicas=1))
    scaling_down = compute_status(
        _replica_set(2, replicas=3, fullyLabeledReplicas=3, readyReplicas=3, availableReplicas=3)
    )

    assert scaling_up.status is Status.IN_PROGRESS
    assert scaling_up.message == "availableReplicas: 1/2"
    assert scaling_down.status is Status.IN_PROGRESS
    assert scaling_down.message == "Pending termination: 1"


def test_deployment_deadline_exceeded_is_failed() -> None:
    obj = _deployment(
        1,
        conditions=[{"type": "Progressing", "status": "False", "reason": "ProgressDeadlineExceeded"}],
    )

    assert compute_status(obj).status is Status.FAILED


def test_unobserved_generation_is_in_progress() -> None:
    obj = _deployment(1, updatedReplicas=1, readyReplicas=1, availableReplicas=1)
    obj["status"]["observedGeneration"] = 1  # type: ignore[index]

    assert compute_status(obj).status is Status.IN_PROGRESS


def test_terminating_objects() -> None:
    obj = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": "x", "deletionTimestamp": "2025-01-01T00:00:00Z"},
    }

    assert compute_status(obj).status is Status.TERMINATING


def test_generic_objects_follow_kstatus_conditions() -> None:
    def custom(*conditions: dict[str, str]) -> dict[str, object]:
        return {
            "apiVersion": "example.com/v1",
            "kind": "Widget",
            "metadata": {"name": "w"},
            "status": {"conditions": list(conditions)},
        }

    assert compute_status(custom()).status is Status.CURRENT
    assert compute_status(custom({"type": "Ready", "status": "True"})).status is Status.CURRENT
    assert compute_status(custom({"type": "Ready", "status": "False"})).status is Status.IN_PROGRESS
    assert compute_status(custom({"type": "Stalled", "status": "True"})).status is Status.FAILED
    assert (
        compute_status(custom({"type": "Reconciling", "status": "True"})).status is Status.IN_PROGRESS
    )


def test_crd_and_pod_rules() -> None:
    crd = {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": "widgets.example.com"},
        "status": {"conditions": [{"type": "Established", "status": "True"}]},
    }
    pod = {"apiVersion": "v1", "kind": "Pod", "metadata": {"name": "p"}, "status": {"phase": "Failed"}}

    assert compute_status(crd).status is Status.CURRENT
    assert compute_status(pod).status is Status.FAILED
