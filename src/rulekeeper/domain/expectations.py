"""Stale-view guard keyed by object identity.

After the controller writes an object it records the resource version the write
was based on. Until the local view shows a newer version, any pass for that object
would act on data the controller itself already superseded, so the guard reports
the expectation as unsatisfied and the pass becomes a no-op. The next watch event
for the object retries it.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from .model import ObjectKey

log = getLogger(__name__)

DEFAULT_TIMEOUT = timedelta(minutes=5)


@dataclass(frozen=True, slots=True)
class _Expectation:
    base_version: str
    armed_at: float


def _is_newer(observed: str, base: str) -> bool:
    try:
        return int(observed) > int(base)
    except ValueError:
        return observed != base


class ResourceVersionExpectation:
    """Table of ``{key -> expected version transition}`` with guard/arm/clear operations."""

    def __init__(
        self,
        name: str,
        *,
        timeout: timedelta = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._timeout = timeout.total_seconds()
        self._clock = clock
        self._records: dict[ObjectKey, _Expectation] = {}
        self._lock = threading.Lock()

    def satisfied_expectations(self, key: ObjectKey, observed_version: str) -> bool:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return True
            if _is_newer(observed_version, record.base_version):
                del self._records[key]
                return True
            if self._clock() - record.armed_at > self._timeout:
                del self._records[key]
                log.warning(
                    "%s expectation for %s timed out waiting past version %s",
                    self.name,
                    key,
                    record.base_version,
                )
                return True
            return False

    def expect_update(self, key: ObjectKey, base_version: str) -> None:
        with self._lock:
            now = self._clock()
            self._sweep_expired(now)
            self._records[key] = _Expectation(base_version=base_version, armed_at=now)

    def sweep(self) -> int:
        """Drop every timed-out record and return how many were dropped.

        Records for objects that no pass lists again (released or deleted targets)
        are only ever removed here.
        """

        with self._lock:
            return self._sweep_expired(self._clock())

    def _sweep_expired(self, now: float) -> int:
        expired = [
            key for key, record in self._records.items() if now - record.armed_at > self._timeout
        ]
        for key in expired:
            del self._records[key]
        if expired:
            log.debug("%s dropped %d expired expectations", self.name, len(expired))
        return len(expired)

    def delete_expectations(self, key: ObjectKey) -> None:
        with self._lock:
            self._records.pop(key, None)

    def pending(self, key: ObjectKey) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
