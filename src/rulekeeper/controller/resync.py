"""Periodic resync that enqueues every RuleSet of the watched namespaces.

Each round also sweeps timed-out records from the given expectation tables.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rulekeeper.domain.expectations import ResourceVersionExpectation
    from rulekeeper.domain.ports import RuleSetRepository

    from .queue import WorkQueue

log = getLogger(__name__)

DEFAULT_RESYNC_PERIOD = timedelta(seconds=30)


@dataclass(slots=True)
class ResyncLoop:
    rulesets: RuleSetRepository
    queue: WorkQueue
    namespaces: Sequence[str]
    period: timedelta = DEFAULT_RESYNC_PERIOD
    expectations: Sequence[ResourceVersionExpectation] = ()
    _stopped: threading.Event = field(default_factory=threading.Event, init=False)

    def resync_once(self) -> int:
        for table in self.expectations:
            table.sweep()
        enqueued = 0
        for namespace in self.namespaces:
            try:
                rulesets = self.rulesets.list_in_namespace(namespace)
            except Exception:
                log.exception("Failed to list RuleSets in namespace %s", namespace)
                continue
            for ruleset in rulesets:
                self.queue.add(ruleset.key)
                enqueued += 1
        log.debug("Resync enqueued %s RuleSets", enqueued)
        return enqueued

    def run(self) -> None:
        """Resync until ``stop`` is called or the queue shuts down."""

        while not self._stopped.is_set() and not self.queue.shutting_down():
            self.resync_once()
            self._stopped.wait(self.period.total_seconds())

    def stop(self) -> None:
        self._stopped.set()
