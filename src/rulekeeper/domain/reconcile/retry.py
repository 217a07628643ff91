"""Optimistic-concurrency update loop."""

from __future__ import annotations

import random
import time
from logging import getLogger
from typing import TYPE_CHECKING

from rulekeeper.config.reconcile import RetryBackoff
from rulekeeper.domain.errors import ConflictError, NotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)


def update_with_retry[T](
    fetch: Callable[[], T],
    mutate: Callable[[T], bool],
    write: Callable[[T], T],
    *,
    backoff: RetryBackoff | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T | None:
    """Fetch, mutate and write an object, retrying from a fresh read on conflicts.

    ``mutate`` edits the fetched object in place and returns whether anything changed;
    it must be idempotent. Returns the written object, the fetched object when there
    was nothing to write, or ``None`` when the object no longer exists. The last
    ``ConflictError`` propagates once ``backoff.steps`` attempts are used up; every
    other error propagates immediately.
    """

    policy = backoff or RetryBackoff()
    delays = policy.delays()
    attempt = 0
    while True:
        try:
            current = fetch()
        except NotFoundError:
            return None
        if not mutate(current):
            return current
        try:
            return write(current)
        except NotFoundError:
            return None
        except ConflictError as exc:
            if attempt >= len(delays):
                raise
            delay = delays[attempt] * (1.0 + random.random() * policy.jitter)  # noqa: S311
            attempt += 1
            log.debug("Conflict writing %s (attempt %s), retrying in %.3fs", exc.key, attempt, delay)
            sleep(delay)
