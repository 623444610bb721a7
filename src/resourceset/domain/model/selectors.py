"""Kubernetes label selectors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


class SelectorOperator(StrEnum):
    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"


class InvalidLabelSelectorError(ValueError):
    """Raised when a selector cannot be interpreted."""


@dataclass(frozen=True, slots=True)
class SelectorRequirement:
    key: str
    operator: str
    values: tuple[str, ...] = ()

    def validate(self) -> None:
        if not self.key:
            raise InvalidLabelSelectorError("selector requirement key must not be empty")
        try:
            operator = SelectorOperator(self.operator)
        except ValueError:
            raise InvalidLabelSelectorError(
                f"'{self.operator}' is not a valid label selector operator"
            ) from None
        if operator in {SelectorOperator.IN, SelectorOperator.NOT_IN} and not self.values:
            raise InvalidLabelSelectorError(
                f"values must be non-empty for operator '{operator}' on key '{self.key}'"
            )
        if operator in {SelectorOperator.EXISTS, SelectorOperator.DOES_NOT_EXIST} and self.values:
            raise InvalidLabelSelectorError(
                f"values must be empty for operator '{operator}' on key '{self.key}'"
            )

    def matches(self, labels: Mapping[str, str]) -> bool:
        match SelectorOperator(self.operator):
            case SelectorOperator.IN:
                return self.key in labels and labels[self.key] in self.values
            case SelectorOperator.NOT_IN:
                return self.key not in labels or labels[self.key] not in self.values
            case SelectorOperator.EXISTS:
                return self.key in labels
            case SelectorOperator.DOES_NOT_EXIST:
                return self.key not in labels

    def __str__(self) -> str:
        match SelectorOperator(self.operator):
            case SelectorOperator.IN:
                return f"{self.key} in ({','.join(sorted(self.values))})"
            case SelectorOperator.NOT_IN:
                return f"{self.key} notin ({','.join(sorted(self.values))})"
            case SelectorOperator.EXISTS:
                return self.key
            case SelectorOperator.DOES_NOT_EXIST:
                return f"!{self.key}"


@dataclass(frozen=True, slots=True)
class LabelSelector:
    """Selector combining equality labels and set-based requirements (AND)."""

    match_labels: Mapping[str, str] = field(default_factory=dict["str", "str"])
    match_expressions: tuple[SelectorRequirement, ...] = ()

    def validate(self) -> None:
        for key in self.match_labels:
            if not key:
                raise InvalidLabelSelectorError("matchLabels keys must not be empty")
        for requirement in self.match_expressions:
            requirement.validate()

    def matches(self, labels: Mapping[str, str]) -> bool:
        self.validate()
        for key, value in self.match_labels.items():
            if labels.get(key) != value:
                return False
        return all(requirement.matches(labels) for requirement in self.match_expressions)

    def is_empty(self) -> bool:
        return not self.match_labels and not self.match_expressions

    def __str__(self) -> str:
        """Render the selector in the ``labelSelector`` query syntax."""

        parts = [f"{key}={value}" for key, value in sorted(self.match_labels.items())]
        parts.extend(str(requirement) for requirement in self.match_expressions)
        return ",".join(parts)
