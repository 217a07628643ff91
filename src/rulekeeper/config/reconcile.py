"""Reconcile engine defaults and environment overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Final

from .env import env_float, env_int

FINALIZER: Final[str] = "rulekeeper.io/need-clean-up"
TERMINATING_LABEL: Final[str] = "rulekeeper.io/terminating"
OWNERSHIP_ANNOTATION: Final[str] = "rulekeeper.io/rulesets"

DEFAULT_MAX_CONCURRENT_RECONCILES = 10
DEFAULT_BLOCKED_RECHECK = timedelta(seconds=5)
DEFAULT_EXPECTATION_TIMEOUT = timedelta(minutes=5)


@dataclass(frozen=True, slots=True)
class RetryBackoff:
    """Bounded backoff for optimistic-concurrency write loops.

    Defaults match the conventional API-machinery retry: five attempts, 10ms apart,
    no growth, 10% jitter.
    """

    steps: int = 5
    duration: timedelta = timedelta(milliseconds=10)
    factor: float = 1.0
    jitter: float = 0.1

    def delays(self) -> list[float]:
        """Return the base sleep (seconds) before each retry after the first attempt."""

        delay = self.duration.total_seconds()
        delays: list[float] = []
        for _ in range(max(self.steps - 1, 0)):
            delays.append(delay)
            if self.factor > 0:
                delay *= self.factor
        return delays


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    finalizer: str = FINALIZER
    terminating_label: str = TERMINATING_LABEL
    ownership_annotation: str = OWNERSHIP_ANNOTATION
    blocked_recheck: timedelta = DEFAULT_BLOCKED_RECHECK
    max_concurrent_reconciles: int = DEFAULT_MAX_CONCURRENT_RECONCILES
    stage_workers: int | None = None
    expectation_timeout: timedelta = DEFAULT_EXPECTATION_TIMEOUT
    conflict_backoff: RetryBackoff = field(default_factory=RetryBackoff)


def get_reconcile_config() -> ReconcileConfig:
    return ReconcileConfig(
        max_concurrent_reconciles=env_int(
            "RULEKEEPER_MAX_CONCURRENT_RECONCILES",
            DEFAULT_MAX_CONCURRENT_RECONCILES,
            minimum=1,
        ),
        expectation_timeout=timedelta(
            seconds=env_float(
                "RULEKEEPER_EXPECTATION_TIMEOUT_SECONDS",
                DEFAULT_EXPECTATION_TIMEOUT.total_seconds(),
                minimum=0.0,
            )
        ),
    )
