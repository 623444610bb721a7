"""Reconciliation error taxonomy.

Terminal errors are configuration defects that must not be retried until the
ResourceSet changes. Everything else is retried by the controller, either with a
fixed delay (dependencies) or with exponential backoff.
"""

from __future__ import annotations

from collections.abc import Sequence


class ReconcileError(Exception):
    """Base class for errors raised while reconciling a ResourceSet."""


class ConfigurationError(ReconcileError):
    """The ResourceSet is misconfigured; retrying will not help."""


class InvalidExpressionError(ConfigurationError):
    def __init__(self, message: str, *, expression: str = "") -> None:
        super().__init__(message)
        self.expression = expression


class InvalidSelectorError(ConfigurationError):
    pass


class InvalidProviderReferenceError(ConfigurationError):
    pass


class InvalidInputStrategyError(ConfigurationError):
    def __init__(self, strategy: str) -> None:
        super().__init__(f"unknown input strategy: '{strategy}'")
        self.strategy = strategy


class PermutationLimitError(ConfigurationError):
    def __init__(self, count: int, limit: int) -> None:
        super().__init__(f"number of permutations {count} exceeds the maximum of {limit}")
        self.count = count
        self.limit = limit


class BuildError(ReconcileError):
    """Rendering the desired objects failed."""


class DependencyNotReadyError(ReconcileError):
    """A dependency is missing or not ready; retried after a fixed delay."""


class InputResolutionError(ReconcileError):
    """Fetching an input provider failed; the cause tells whether it is transient."""


class ApplyError(ReconcileError):
    """Applying or pruning objects failed."""


class WaitError(ApplyError):
    """Applied objects did not become ready within the timeout."""


class WaitCancelledError(WaitError):
    """A readiness or termination wait was interrupted by the stop signal."""


class StatusPatchError(ReconcileError):
    """Persisting the ResourceSet status failed."""


class AggregateReconcileError(ReconcileError):
    """Several errors occurred during one reconcile pass."""

    def __init__(self, errors: Sequence[BaseException]) -> None:
        self.errors = tuple(errors)
        super().__init__("; ".join(str(error) for error in self.errors))


class TerminalError(ReconcileError):
    """Signals the controller to stop retrying until the object changes."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.__cause__ = cause

    @property
    def cause(self) -> BaseException:
        assert self.__cause__ is not None
        return self.__cause__


def aggregate_errors(*errors: BaseException | None) -> BaseException | None:
    """Collapse ``errors`` into one exception, or ``None`` when all are ``None``."""

    present = [error for error in errors if error is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return AggregateReconcileError(present)


def is_terminal(error: BaseException | None) -> bool:
    if error is None:
        return False
    if isinstance(error, TerminalError):
        return True
    if isinstance(error, AggregateReconcileError):
        return any(is_terminal(item) for item in error.errors)
    return False
