"""Port for the readiness expression language."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


class ExpressionEvaluationError(Exception):
    """Raised when a compiled expression fails or does not yield a boolean."""


@runtime_checkable
class CompiledExpression(Protocol):
    expression: str

    def evaluate_boolean(self, obj: Mapping[str, Any]) -> bool: ...


@runtime_checkable
class ExpressionEngine(Protocol):
    def compile(self, expression: str) -> CompiledExpression:
        """Compile ``expression`` or raise ``InvalidExpressionError``."""
        ...
