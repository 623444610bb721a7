from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import pytest

from resourceset.adapters.memory import MemoryObjectStore
from resourceset.domain.dependencies import DependencyGate
from resourceset.domain.errors import DependencyNotReadyError, InvalidExpressionError
from resourceset.domain.model.resourceset import DependencyRef
from resourceset.domain.ports.expressions import ExpressionEvaluationError
from tests.support.resourcesets import config_map


@dataclass
class _FakeExpression:
    expression: str

    def evaluate_boolean(self, obj: Mapping[str, Any]) -> bool:
        if self.expression == "explode":
            raise ExpressionEvaluationError("no such key: status")
        return obj.get("data", {}).get("ready") == self.expression


class _FakeEngine:
    def __init__(self) -> None:
        self.compiled: list[str] = []

    def compile(self, expression: str) -> _FakeExpression:
        if expression == "(":
            raise InvalidExpressionError("syntax error", expression=expression)
        self.compiled.append(expression)
        return _FakeExpression(expression)


class _RecordingStore:
    def __init__(self, store: MemoryObjectStore) -> None:
        self._store = store
        self.fetched: list[str] = []

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        self.fetched.append(name)
        return self._store.get(api_version, kind, namespace, name)


def _dep(name: str, *, ready: bool = False, ready_expr: str = "") -> DependencyRef:
    return DependencyRef(
        api_version="v1", kind="ConfigMap", name=name, namespace="default", ready=ready, ready_expr=ready_expr
    )


def test_gate_passes_when_dependencies_exist(store: MemoryObjectStore) -> None:
    store.add(config_map("a"), config_map("b"))
    gate = DependencyGate(store, _FakeEngine())

    gate.check(gate.compile([_dep("a"), _dep("b", ready=True)]))


def test_gate_fails_fast_on_first_unmet_dependency(store: MemoryObjectStore) -> None:
    store.add(config_map("a"), config_map("last"))
    recording = _RecordingStore(store)
    gate = DependencyGate(recording, _FakeEngine())  # pyright: ignore[reportArgumentType]

    with pytest.raises(DependencyNotReadyError) as excinfo:
        gate.check(gate.compile([_dep("a"), _dep("first-missing"), _dep("last")]))

    assert "first-missing" in str(excinfo.value)
    assert recording.fetched == ["a", "first-missing"]


def test_invalid_expression_invalidates_the_whole_list(store: MemoryObjectStore) -> None:
    engine = _FakeEngine()
    gate = DependencyGate(store, engine)

    with pytest.raises(InvalidExpressionError, match="failed to parse expression"):
        gate.compile([_dep("a", ready=True, ready_expr="yes"), _dep("b", ready=True, ready_expr="(")])


def test_expression_is_ignored_unless_ready_is_set(store: MemoryObjectStore) -> None:
    store.add(config_map("a"))
    engine = _FakeEngine()
    gate = DependencyGate(store, engine)

    gate.check(gate.compile([_dep("a", ready_expr="(")]))

    assert engine.compiled == []


def test_ready_expression_decides_readiness(store: MemoryObjectStore) -> None:
    store.add(config_map("a", data={"ready": "yes"}), config_map("b", data={"ready": "no"}))
    gate = DependencyGate(store, _FakeEngine())

    gate.check(gate.compile([_dep("a", ready=True, ready_expr="yes")]))
    with pytest.raises(DependencyNotReadyError, match="expression 'yes'"):
        gate.check(gate.compile([_dep("b", ready=True, ready_expr="yes")]))
    with pytest.raises(DependencyNotReadyError, match="failed to evaluate expression"):
        gate.check(gate.compile([_dep("a", ready=True, ready_expr="explode")]))


def test_ready_without_expression_uses_kstatus(store: MemoryObjectStore) -> None:
    store.add(
        {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": "a", "namespace": "default"},
            "status": {"conditions": [{"type": "Ready", "status": "False"}]},
        }
    )
    gate = DependencyGate(store, _FakeEngine())

    with pytest.raises(DependencyNotReadyError, match="status InProgress"):
        gate.check(gate.compile([_dep("a", ready=True)]))
