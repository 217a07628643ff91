"""Delaying, de-duplicating work queue for object keys.

A key that is added while queued is not queued twice, and a key that is added
while a worker processes it is queued again only once the worker calls ``done``.
Together this guarantees that no two workers ever handle the same key at once.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from rulekeeper.domain.model import ObjectKey

log = getLogger(__name__)


@dataclass(slots=True)
class ItemBackoff:
    """Per-key exponential backoff for failed or retried keys."""

    base: timedelta = timedelta(milliseconds=5)
    cap: timedelta = timedelta(seconds=1000)
    _failures: dict[ObjectKey, int] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def when(self, key: ObjectKey) -> timedelta:
        with self._lock:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        delay = self.base.total_seconds() * (2**failures)
        return timedelta(seconds=min(delay, self.cap.total_seconds()))

    def forget(self, key: ObjectKey) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def failures(self, key: ObjectKey) -> int:
        with self._lock:
            return self._failures.get(key, 0)


class WorkQueue:
    def __init__(
        self,
        name: str,
        *,
        backoff: ItemBackoff | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.backoff = backoff or ItemBackoff()
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: deque[ObjectKey] = deque()
        self._dirty: set[ObjectKey] = set()
        self._processing: set[ObjectKey] = set()
        self._waiting: list[tuple[float, int, ObjectKey]] = []
        self._sequence = itertools.count()
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def add(self, key: ObjectKey) -> None:
        with self._cond:
            self._add_locked(key)

    def add_after(self, key: ObjectKey, delay: timedelta) -> None:
        seconds = delay.total_seconds()
        with self._cond:
            if self._shutting_down:
                return
            if seconds <= 0:
                self._add_locked(key)
                return
            heapq.heappush(self._waiting, (self._clock() + seconds, next(self._sequence), key))
            self._cond.notify()

    def add_rate_limited(self, key: ObjectKey) -> None:
        self.add_after(key, self.backoff.when(key))

    def forget(self, key: ObjectKey) -> None:
        self.backoff.forget(key)

    def get(self, timeout: float | None = None) -> ObjectKey | None:
        """Block until a key is ready; ``None`` on shutdown or when ``timeout`` expires."""

        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_ready_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._processing.add(key)
                    self._dirty.discard(key)
                    return key
                if self._shutting_down:
                    return None
                if deadline is not None and deadline <= self._clock():
                    return None
                self._cond.wait(self._next_wait_locked(deadline))

    def done(self, key: ObjectKey) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()
        log.debug("Work queue %s shut down", self.name)

    def _add_locked(self, key: ObjectKey) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def _promote_ready_locked(self) -> None:
        now = self._clock()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, key = heapq.heappop(self._waiting)
            self._add_locked(key)

    def _next_wait_locked(self, deadline: float | None) -> float | None:
        now = self._clock()
        waits: list[float] = []
        if self._waiting:
            waits.append(self._waiting[0][0] - now)
        if deadline is not None:
            waits.append(deadline - now)
        return max(min(waits), 0.0) if waits else None
