"""Status condition types and the kstatus-compatible helpers that mutate them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


READY_CONDITION = "Ready"
RECONCILING_CONDITION = "Reconciling"
STALLED_CONDITION = "Stalled"

OWNED_CONDITIONS = (READY_CONDITION, RECONCILING_CONDITION, STALLED_CONDITION)


class ConditionStatus(StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Reason(StrEnum):
    """Condition and event reasons emitted by the reconciler."""

    PROGRESSING = "Progressing"
    PROGRESSING_WITH_RETRY = "ProgressingWithRetry"
    RECONCILIATION_SUCCEEDED = "ReconciliationSucceeded"
    RECONCILIATION_FAILED = "ReconciliationFailed"
    RECONCILIATION_DISABLED = "ReconciliationDisabled"
    DEPENDENCY_NOT_READY = "DependencyNotReady"
    INVALID_CEL_EXPRESSION = "InvalidCELExpression"
    BUILD_FAILED = "BuildFailed"
    APPLY_SUCCEEDED = "ApplySucceeded"


@dataclass(slots=True, kw_only=True)
class Condition:
    type: str
    status: ConditionStatus
    reason: str
    message: str = ""
    observed_generation: int = 0
    last_transition_time: datetime | None = None


class ConditionSet:
    """Ordered collection of conditions keyed by type."""

    def __init__(
        self,
        conditions: list[Condition] | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._conditions: list[Condition] = list(conditions or [])
        self._clock = clock or (lambda: datetime.now(UTC))

    def __iter__(self) -> Iterator[Condition]:
        return iter(self._conditions)

    def __len__(self) -> int:
        return len(self._conditions)

    def as_list(self) -> list[Condition]:
        return list(self._conditions)

    def get(self, condition_type: str) -> Condition | None:
        for condition in self._conditions:
            if condition.type == condition_type:
                return condition
        return None

    def has(self, condition_type: str) -> bool:
        return self.get(condition_type) is not None

    def is_true(self, condition_type: str) -> bool:
        condition = self.get(condition_type)
        return condition is not None and condition.status is ConditionStatus.TRUE

    def is_false(self, condition_type: str) -> bool:
        condition = self.get(condition_type)
        return condition is not None and condition.status is ConditionStatus.FALSE

    def reason(self, condition_type: str) -> str:
        condition = self.get(condition_type)
        return condition.reason if condition else ""

    def message(self, condition_type: str) -> str:
        condition = self.get(condition_type)
        return condition.message if condition else ""

    def set(self, condition: Condition) -> None:
        """Insert or replace ``condition``; the transition time only moves on status change."""

        existing = self.get(condition.type)
        if existing is None:
            if condition.last_transition_time is None:
                condition.last_transition_time = self._clock()
            self._conditions.append(condition)
            return
        if existing.status != condition.status or existing.last_transition_time is None:
            existing.last_transition_time = condition.last_transition_time or self._clock()
        existing.status = condition.status
        existing.reason = condition.reason
        existing.message = condition.message
        existing.observed_generation = condition.observed_generation

    def delete(self, condition_type: str) -> None:
        self._conditions = [c for c in self._conditions if c.type != condition_type]

    def mark_true(self, condition_type: str, reason: str, message: str, *, generation: int = 0) -> None:
        self.set(_condition(condition_type, ConditionStatus.TRUE, reason, message, generation))

    def mark_false(self, condition_type: str, reason: str, message: str, *, generation: int = 0) -> None:
        self.set(_condition(condition_type, ConditionStatus.FALSE, reason, message, generation))

    def mark_unknown(
        self, condition_type: str, reason: str, message: str, *, generation: int = 0
    ) -> None:
        self.set(_condition(condition_type, ConditionStatus.UNKNOWN, reason, message, generation))

    def mark_reconciling(self, reason: str, message: str, *, generation: int = 0) -> None:
        # Reconciling and Stalled are mutually exclusive.
        self.delete(STALLED_CONDITION)
        self.mark_true(RECONCILING_CONDITION, reason, message, generation=generation)

    def mark_stalled(self, reason: str, message: str, *, generation: int = 0) -> None:
        self.delete(RECONCILING_CONDITION)
        self.mark_true(STALLED_CONDITION, reason, message, generation=generation)


def _condition(
    condition_type: str,
    status: ConditionStatus,
    reason: str,
    message: str,
    generation: int,
) -> Condition:
    return Condition(
        type=condition_type,
        status=status,
        reason=reason,
        message=message,
        observed_generation=generation,
    )
