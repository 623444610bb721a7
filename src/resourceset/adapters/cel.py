"""CEL ``ExpressionEngine`` built on ``cel-python``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import celpy
from celpy import celtypes

from resourceset.domain.errors import InvalidExpressionError
from resourceset.domain.ports.expressions import ExpressionEvaluationError

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class CelExpression:
    expression: str
    program: celpy.Runner

    def evaluate_boolean(self, obj: Mapping[str, Any]) -> bool:
        """Evaluate against ``obj``; its top-level fields are the CEL variables."""

        activation = {key: celpy.json_to_cel(value) for key, value in obj.items()}
        try:
            result = self.program.evaluate(activation)
        except celpy.CELEvalError as exc:
            raise ExpressionEvaluationError(f"failed to evaluate '{self.expression}': {exc}") from exc
        if isinstance(result, celpy.CELEvalError):
            raise ExpressionEvaluationError(f"failed to evaluate '{self.expression}': {result}")
        if not isinstance(result, celtypes.BoolType):
            raise ExpressionEvaluationError(
                f"expression '{self.expression}' must evaluate to a boolean, got {type(result).__name__}"
            )
        return bool(result)


class CelExpressionEngine:
    def __init__(self) -> None:
        self._env = celpy.Environment()

    def compile(self, expression: str) -> CelExpression:
        if not expression.strip():
            raise InvalidExpressionError("expression must not be empty", expression=expression)
        try:
            ast = self._env.compile(expression)
            program = self._env.program(ast)
        except celpy.CELParseError as exc:
            raise InvalidExpressionError(
                f"failed to parse expression '{expression}': {exc}", expression=expression
            ) from exc
        return CelExpression(expression=expression, program=program)
