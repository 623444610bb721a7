"""ResourceSet reconciliation state machine.

A reconcile pass moves the object through ``Initializing -> Progressing ->
{Ready | Stalled}``. Configuration defects are terminal: they stall the object
and are never retried until it changes. Dependency, provider and apply failures
are transient and are retried by the controller.
"""

from __future__ import annotations

import dataclasses
import random
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any

from resourceset.domain.apply.engine import objects_digest
from resourceset.domain.errors import (
    ApplyError,
    BuildError,
    ConfigurationError,
    DependencyNotReadyError,
    InputResolutionError,
    InvalidExpressionError,
    StatusPatchError,
    TerminalError,
    WaitCancelledError,
    aggregate_errors,
)
from resourceset.domain.history import digest_of
from resourceset.domain.model.conditions import (
    READY_CONDITION,
    RECONCILING_CONDITION,
    STALLED_CONDITION,
    Reason,
)
from resourceset.domain.model.durations import format_duration, round_duration
from resourceset.domain.model.resourceset import API_VERSION, FINALIZER, RESOURCE_SET_KIND
from resourceset.domain.ports.events import EventType
from resourceset.domain.ports.store import NotFoundError, StoreError

from .patch import SerialPatcher

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable

    from resourceset.domain.apply.engine import ApplyEngine
    from resourceset.domain.dependencies import DependencyGate
    from resourceset.domain.inputs.resolver import InputResolver
    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.model.resourceset import ObjectKey, ResourceSet
    from resourceset.domain.ports.builder import ResourceBuilder
    from resourceset.domain.ports.codec import ResourceSetCodec
    from resourceset.domain.ports.events import EventRecorder
    from resourceset.domain.ports.store import ClientFactory, ObjectStore


log = getLogger(__name__)

MSG_IN_PROGRESS = "Reconciliation in progress"
MSG_INIT_SUSPENDED = "Initialized with reconciliation suspended"
MSG_TERMINAL_ERROR = "Reconciliation failed terminally due to configuration error"
MSG_DISABLED = "Reconciliation is disabled"


@dataclass(frozen=True, slots=True)
class Result:
    """Requeue directive returned to the controller."""

    requeue: bool = False
    requeue_after: timedelta | None = None


@dataclass(frozen=True, slots=True)
class ReconcilerSettings:
    requeue_dependency: timedelta = timedelta(seconds=5)
    interval_jitter: float = 0.0


class ResourceSetReconciler:
    def __init__(
        self,
        *,
        store: ObjectStore,
        codec: ResourceSetCodec,
        clients: ClientFactory,
        resolver: InputResolver,
        gate: DependencyGate,
        builder: ResourceBuilder,
        engine: ApplyEngine,
        recorder: EventRecorder,
        settings: ReconcilerSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._codec = codec
        self._clients = clients
        self._resolver = resolver
        self._gate = gate
        self._builder = builder
        self._engine = engine
        self._recorder = recorder
        self.settings = settings or ReconcilerSettings()
        self._clock = clock or (lambda: datetime.now(UTC))

    def reconcile(self, key: ObjectKey, *, stop: threading.Event | None = None) -> Result:
        """Run one reconcile pass; the status is always persisted before returning."""

        try:
            obj = self._store.get(API_VERSION, RESOURCE_SET_KIND, key.namespace, key.name)
        except NotFoundError:
            return Result()

        try:
            resource_set = self._codec.decode(obj)
        except ConfigurationError as exc:
            log.error("[%s] %s", key, exc)
            raise TerminalError(exc) from exc
        patcher = SerialPatcher(self._store, self._codec, resource_set)

        result = Result()
        error: BaseException | None = None
        try:
            result = self._reconcile_object(resource_set, patcher, stop)
        except Exception as exc:  # noqa: BLE001
            error = exc

        finalize_status(resource_set)
        patch_error = self._patch(resource_set, patcher)
        if patch_error is not None:
            log.error("[%s] failed to update status: %s", key, patch_error)

        combined = aggregate_errors(error, patch_error)
        if combined is not None:
            raise combined
        return result

    def _reconcile_object(
        self,
        resource_set: ResourceSet,
        patcher: SerialPatcher,
        stop: threading.Event | None,
    ) -> Result:
        if resource_set.is_deleting:
            return self.uninstall(resource_set, stop=stop)

        if not resource_set.has_finalizer():
            log.info("[%s] Adding finalizer %s", resource_set.key, FINALIZER)
            initialize_status(resource_set)
            return Result(requeue=True)

        if resource_set.is_disabled():
            log.error("[%s] %s, can't reconcile instance", resource_set.key, MSG_DISABLED)
            self._notify(resource_set, EventType.WARNING, Reason.RECONCILIATION_DISABLED, MSG_DISABLED)
            return Result()

        previous_reason = resource_set.status.conditions.reason(READY_CONDITION)
        started = time.monotonic()

        try:
            dependencies = self._gate.compile(resource_set.spec.depends_on)
        except InvalidExpressionError as exc:
            self._mark_terminal(resource_set, Reason.INVALID_CEL_EXPRESSION, f"{MSG_TERMINAL_ERROR}: {exc}", started)
            raise TerminalError(exc) from exc

        try:
            self._gate.check(dependencies)
        except DependencyNotReadyError as exc:
            message = f"Retrying dependency check: {exc}"
            if previous_reason != Reason.DEPENDENCY_NOT_READY:
                log.error("[%s] dependency check failed: %s", resource_set.key, exc)
                self._notify(resource_set, EventType.NORMAL, Reason.DEPENDENCY_NOT_READY, message)
            resource_set.status.conditions.mark_false(
                READY_CONDITION,
                Reason.DEPENDENCY_NOT_READY,
                message,
                generation=resource_set.generation,
            )
            return Result(requeue_after=self.settings.requeue_dependency)

        return self._reconcile_resources(resource_set, patcher, previous_reason, started, stop)

    def _reconcile_resources(
        self,
        resource_set: ResourceSet,
        patcher: SerialPatcher,
        previous_reason: str,
        started: float,
        stop: threading.Event | None,
    ) -> Result:
        conditions = resource_set.status.conditions
        generation = resource_set.generation
        conditions.mark_unknown(READY_CONDITION, Reason.PROGRESSING, MSG_IN_PROGRESS, generation=generation)
        conditions.mark_reconciling(Reason.PROGRESSING, MSG_IN_PROGRESS, generation=generation)
        patch_error = self._patch(resource_set, patcher)
        if patch_error is not None:
            raise patch_error

        try:
            inputs = self._resolver.combined_inputs(resource_set)
        except ConfigurationError as exc:
            self._mark_terminal(resource_set, Reason.BUILD_FAILED, f"failed to compute inputs: {exc}", started)
            raise TerminalError(exc) from exc
        except InputResolutionError as exc:
            message = f"failed to compute inputs: {exc}"
            conditions.mark_false(
                READY_CONDITION, Reason.RECONCILIATION_FAILED, message, generation=generation
            )
            self._record_history(resource_set, spec_digest(resource_set), started)
            self._notify_on_transition(resource_set, previous_reason, Reason.RECONCILIATION_FAILED, message)
            raise

        objects: list[Unstructured] = []
        if resource_set.spec.inputs_from and not inputs:
            log.info("[%s] No inputs returned from providers, reconciling an empty set", resource_set.key)
        else:
            try:
                objects = self._builder.build(
                    resource_set.spec.resources_template, resource_set.spec.resources, inputs
                )
            except BuildError as exc:
                self._mark_terminal(resource_set, Reason.BUILD_FAILED, f"build failed: {exc}", started)
                raise TerminalError(exc) from exc

        metadata = {"inputs": str(len(inputs)), "resources": str(len(objects))}
        try:
            outcome = self._engine.apply(resource_set, objects, stop=stop)
        except (ApplyError, StoreError) as exc:
            message = f"reconciliation failed: {exc}"
            conditions.mark_false(
                READY_CONDITION, Reason.RECONCILIATION_FAILED, message, generation=generation
            )
            self._record_history(resource_set, objects_digest(objects), started, metadata)
            self._notify_on_transition(resource_set, previous_reason, Reason.RECONCILIATION_FAILED, message)
            raise

        resource_set.status.last_applied_revision = outcome.digest
        message = f"Reconciliation finished in {_elapsed(started)}"
        conditions.mark_true(
            READY_CONDITION, Reason.RECONCILIATION_SUCCEEDED, message, generation=generation
        )
        self._record_history(resource_set, outcome.digest, started, metadata)

        log.info("[%s] %s", resource_set.key, message)
        self._notify(resource_set, EventType.NORMAL, Reason.RECONCILIATION_SUCCEEDED, message)
        return self.requeue_after(resource_set)

    def uninstall(self, resource_set: ResourceSet, *, stop: threading.Event | None = None) -> Result:
        """Prune the inventory, then release the object unless the prune was cancelled."""

        started = time.monotonic()
        inventory = resource_set.status.inventory
        if resource_set.is_disabled() or inventory is None or not inventory:
            resource_set.remove_finalizer()
            return Result()

        service_account = self._engine.service_account_for(resource_set)
        if self._clients.can_impersonate(service_account, resource_set.namespace):
            try:
                manager = self._engine.resource_manager(resource_set, stop=stop)
                deleted = self._engine.delete_all_staged(
                    manager,
                    inventory.to_objects(),
                    self._engine.delete_options(manager, resource_set),
                )
            except WaitCancelledError:
                log.info("[%s] Uninstallation interrupted, finalizer kept", resource_set.key)
                raise
            except (ApplyError, StoreError) as exc:
                log.error("[%s] pruning for deleted resource failed: %s", resource_set.key, exc)
            else:
                log.info(
                    "[%s] Uninstallation completed in %s:\n%s",
                    resource_set.key,
                    _elapsed(started),
                    deleted.to_log(),
                )
        else:
            log.error(
                "[%s] service account %s not found, skip pruning for deleted resource",
                resource_set.key,
                service_account,
            )

        resource_set.remove_finalizer()
        return Result()

    def requeue_after(self, resource_set: ResourceSet) -> Result:
        interval = resource_set.interval
        if interval <= timedelta(0):
            return Result()
        jitter = self.settings.interval_jitter
        if jitter > 0:
            interval = interval * (1 + random.uniform(-jitter, jitter))  # noqa: S311
        return Result(requeue_after=interval)

    def _mark_terminal(self, resource_set: ResourceSet, reason: Reason, message: str, started: float) -> None:
        conditions = resource_set.status.conditions
        conditions.mark_false(READY_CONDITION, reason, message, generation=resource_set.generation)
        conditions.mark_stalled(reason, message, generation=resource_set.generation)
        self._record_history(resource_set, spec_digest(resource_set), started)
        log.error("[%s] %s", resource_set.key, message)
        self._notify(resource_set, EventType.WARNING, reason, message)

    def _record_history(
        self,
        resource_set: ResourceSet,
        digest: str,
        started: float,
        metadata: dict[str, str] | None = None,
    ) -> None:
        resource_set.status.history.upsert(
            digest,
            self._clock(),
            timedelta(seconds=time.monotonic() - started),
            resource_set.status.conditions.reason(READY_CONDITION),
            metadata,
        )

    def _notify_on_transition(
        self, resource_set: ResourceSet, previous_reason: str, reason: Reason, message: str
    ) -> None:
        if previous_reason == reason:
            return
        log.error("[%s] %s", resource_set.key, message)
        self._notify(resource_set, EventType.WARNING, reason, message)

    def _notify(self, resource_set: ResourceSet, event_type: EventType, reason: str, message: str) -> None:
        self._recorder.event(resource_set, event_type, reason, message)

    def _patch(self, resource_set: ResourceSet, patcher: SerialPatcher) -> StatusPatchError | None:
        try:
            patcher.patch(resource_set)
        except NotFoundError as exc:
            if resource_set.is_deleting:
                return None
            return StatusPatchError(f"failed to update status: {exc}")
        except StoreError as exc:
            return StatusPatchError(f"failed to update status: {exc}")
        return None


def initialize_status(resource_set: ResourceSet) -> None:
    resource_set.add_finalizer()
    conditions = resource_set.status.conditions
    generation = resource_set.generation
    if resource_set.is_disabled():
        conditions.mark_true(
            READY_CONDITION, Reason.RECONCILIATION_DISABLED, MSG_INIT_SUSPENDED, generation=generation
        )
        return
    conditions.mark_unknown(READY_CONDITION, Reason.PROGRESSING, MSG_IN_PROGRESS, generation=generation)
    conditions.mark_reconciling(Reason.PROGRESSING, MSG_IN_PROGRESS, generation=generation)


def finalize_status(resource_set: ResourceSet) -> None:
    """Record the handled request and drop stale kstatus conditions."""

    requested_at = resource_set.requested_at()
    if requested_at is not None:
        resource_set.status.last_handled_reconcile_at = requested_at

    conditions = resource_set.status.conditions
    reconciling = conditions.get(RECONCILING_CONDITION)
    if conditions.is_false(READY_CONDITION) and reconciling is not None:
        reconciling.reason = Reason.PROGRESSING_WITH_RETRY

    if conditions.is_true(READY_CONDITION) or conditions.is_true(STALLED_CONDITION):
        conditions.delete(RECONCILING_CONDITION)


def spec_digest(resource_set: ResourceSet) -> str:
    payload: dict[str, Any] = dataclasses.asdict(resource_set.spec)
    return digest_of(payload)


def _elapsed(started: float) -> str:
    return format_duration(round_duration(timedelta(seconds=time.monotonic() - started)))
