"""Dependency gate evaluated before any input is resolved or object applied."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from resourceset.domain.errors import DependencyNotReadyError, InvalidExpressionError
from resourceset.domain.ports.expressions import ExpressionEvaluationError
from resourceset.domain.ports.store import StoreError

from .readiness import compute_status

if TYPE_CHECKING:
    from collections.abc import Sequence

    from resourceset.domain.model.resourceset import DependencyRef
    from resourceset.domain.ports.expressions import CompiledExpression, ExpressionEngine
    from resourceset.domain.ports.store import ObjectStore


@dataclass(slots=True, frozen=True)
class CompiledDependency:
    ref: DependencyRef
    expression: CompiledExpression | None = None


class DependencyGate:
    """Compiles every readiness expression up front, then checks dependencies in order."""

    def __init__(self, store: ObjectStore, engine: ExpressionEngine) -> None:
        self._store = store
        self._engine = engine

    def compile(self, dependencies: Sequence[DependencyRef]) -> list[CompiledDependency]:
        """Compile readiness expressions; one bad expression invalidates the whole list."""

        compiled: list[CompiledDependency] = []
        for ref in dependencies:
            if not (ref.ready and ref.ready_expr):
                compiled.append(CompiledDependency(ref=ref))
                continue
            try:
                expression = self._engine.compile(ref.ready_expr)
            except InvalidExpressionError as exc:
                raise InvalidExpressionError(
                    f"failed to parse expression for dependency {ref}: {exc}",
                    expression=ref.ready_expr,
                ) from exc
            compiled.append(CompiledDependency(ref=ref, expression=expression))
        return compiled

    def check(self, dependencies: Sequence[CompiledDependency]) -> None:
        """Raise ``DependencyNotReadyError`` for the first unmet dependency."""

        for dependency in dependencies:
            self._check_one(dependency)

    def _check_one(self, dependency: CompiledDependency) -> None:
        ref = dependency.ref
        try:
            obj = self._store.get(ref.api_version, ref.kind, ref.namespace, ref.name)
        except StoreError as exc:
            raise DependencyNotReadyError(f"dependency {ref} not found: {exc}") from exc

        if not ref.ready:
            return

        if dependency.expression is not None:
            try:
                ready = dependency.expression.evaluate_boolean(obj)
            except ExpressionEvaluationError as exc:
                raise DependencyNotReadyError(
                    f"dependency {ref} not ready: failed to evaluate expression: {exc}"
                ) from exc
            if not ready:
                raise DependencyNotReadyError(
                    f"dependency {ref} not ready: expression '{ref.ready_expr}'"
                )
            return

        result = compute_status(obj)
        if not result.is_current:
            raise DependencyNotReadyError(f"dependency {ref} not ready: status {result.status}")
