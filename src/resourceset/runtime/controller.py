"""Controller loop: watch ResourceSets, run reconciles on worker threads."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from resourceset.domain.errors import is_terminal
from resourceset.domain.model.objects import (
    annotations_of,
    get_nested,
    name_of,
    namespace_of,
)
from resourceset.domain.model.resourceset import API_VERSION, RESOURCE_SET_KIND, ObjectKey
from resourceset.domain.ports.store import StoreError

from .workqueue import WorkQueue

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from resourceset.domain.ports.store import ObjectStore
    from resourceset.domain.reconciler import ResourceSetReconciler, Result


log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ObservedState:
    """The parts of a ResourceSet whose change triggers a reconcile."""

    generation: int
    annotations: tuple[tuple[str, str], ...]
    deletion_timestamp: str
    finalizers: tuple[str, ...]

    @classmethod
    def of(cls, obj: Mapping[str, Any]) -> ObservedState:
        return cls(
            generation=int(get_nested(obj, "metadata", "generation", default=0) or 0),
            annotations=tuple(sorted(annotations_of(obj).items())),
            deletion_timestamp=str(get_nested(obj, "metadata", "deletionTimestamp", default="") or ""),
            finalizers=tuple(get_nested(obj, "metadata", "finalizers", default=None) or ()),
        )


class Controller:
    def __init__(
        self,
        reconciler: ResourceSetReconciler,
        store: ObjectStore,
        *,
        workers: int = 4,
        resync_period: timedelta = timedelta(seconds=30),
        namespace: str = "",
        queue: WorkQueue[ObjectKey] | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._store = store
        self.workers = workers
        self.resync_period = resync_period
        self.namespace = namespace
        self.queue: WorkQueue[ObjectKey] = queue if queue is not None else WorkQueue()
        self._observed: dict[ObjectKey, ObservedState] = {}
        self._stop = threading.Event()

    def sync(self) -> int:
        """List ResourceSets and enqueue the ones whose observed state changed."""

        try:
            items = self._store.list(API_VERSION, RESOURCE_SET_KIND, namespace=self.namespace)
        except StoreError as exc:
            log.error("Failed to list %s objects: %s", RESOURCE_SET_KIND, exc)
            return 0

        seen: set[ObjectKey] = set()
        enqueued = 0
        for obj in items:
            key = ObjectKey(namespace=namespace_of(obj), name=name_of(obj))
            seen.add(key)
            state = ObservedState.of(obj)
            if self._observed.get(key) == state:
                continue
            self._observed[key] = state
            self.queue.add(key)
            enqueued += 1

        for key in set(self._observed) - seen:
            del self._observed[key]
            self.queue.forget(key)
        return enqueued

    def process_next(self, timeout: float | None = None) -> bool:
        """Reconcile one key; ``False`` when the queue had nothing to hand out."""

        key = self.queue.get(timeout)
        if key is None:
            return False
        try:
            result = self._reconciler.reconcile(key, stop=self._stop)
        except Exception as exc:  # noqa: BLE001
            self._handle_error(key, exc)
        else:
            self._handle_result(key, result)
        finally:
            self.queue.done(key)
        return True

    def run(self, stop: threading.Event) -> None:
        log.info(
            "Starting controller: workers=%d, resync=%s, namespace=%s",
            self.workers,
            self.resync_period,
            self.namespace or "<all>",
        )
        self._stop = stop
        threads = [
            threading.Thread(target=self._worker, name=f"reconciler-{index}", daemon=True)
            for index in range(self.workers)
        ]
        for thread in threads:
            thread.start()

        try:
            while not stop.is_set():
                self.sync()
                stop.wait(self.resync_period.total_seconds())
        finally:
            self.queue.shutdown()
            for thread in threads:
                thread.join()
            log.info("Controller stopped")

    def _worker(self) -> None:
        while not self.queue.shutting_down:
            self.process_next(timeout=0.5)

    def _handle_result(self, key: ObjectKey, result: Result) -> None:
        if result.requeue_after is not None:
            self.queue.forget(key)
            self.queue.add_after(key, result.requeue_after.total_seconds())
        elif result.requeue:
            self.queue.add_rate_limited(key)
        else:
            self.queue.forget(key)

    def _handle_error(self, key: ObjectKey, exc: Exception) -> None:
        if is_terminal(exc):
            log.error("[%s] Reconciler error (terminal, not retrying): %s", key, exc)
            self.queue.forget(key)
            return
        log.error("[%s] Reconciler error: %s", key, exc)
        self.queue.add_rate_limited(key)
