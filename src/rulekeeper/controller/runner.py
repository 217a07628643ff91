"""Bounded pool of workers draining the RuleSet work queue."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from rulekeeper.domain.model import ObjectKey
    from rulekeeper.domain.reconcile import ReconcileResult

    from .queue import WorkQueue

log = getLogger(__name__)

DEFAULT_WORKERS = 10


class Reconciler(Protocol):
    def reconcile(self, key: ObjectKey) -> ReconcileResult: ...


@dataclass(slots=True)
class Controller:
    """Run at most ``workers`` reconcile passes at a time, one per key.

    A failed pass is requeued with per-key exponential backoff; ``requeue_after``
    schedules a delayed pass, ``requeue`` a rate-limited one, and a clean pass
    resets the key's backoff.
    """

    name: str
    reconciler: Reconciler
    queue: WorkQueue
    workers: int = DEFAULT_WORKERS
    _threads: list[threading.Thread] = field(default_factory=list, init=False)

    def start(self) -> None:
        if self._threads:
            raise RuntimeError(f"Controller {self.name} already started")
        for index in range(self.workers):
            thread = threading.Thread(
                target=self._worker,
                name=f"{self.name}-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        log.info("Started controller %s with %s workers", self.name, self.workers)

    def stop(self, timeout: float | None = None) -> None:
        self.queue.shut_down()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
        log.info("Stopped controller %s", self.name)

    def process_next(self, timeout: float | None = None) -> bool:
        """Handle one key; return ``False`` once the queue is shut down or empty."""

        key = self.queue.get(timeout)
        if key is None:
            return False
        try:
            self._handle(key)
        finally:
            self.queue.done(key)
        return True

    def _worker(self) -> None:
        while self.process_next():
            pass

    def _handle(self, key: ObjectKey) -> None:
        try:
            result = self.reconciler.reconcile(key)
        except Exception:
            log.exception("Reconcile of %s failed, requeueing", key)
            self.queue.add_rate_limited(key)
            return

        if result.requeue_after is not None and result.requeue_after.total_seconds() > 0:
            self.queue.forget(key)
            self.queue.add_after(key, result.requeue_after)
        elif result.requeue:
            self.queue.add_rate_limited(key)
        else:
            self.queue.forget(key)
