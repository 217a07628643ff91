"""Shared reconcile contract components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import timedelta

    from rulekeeper.domain.model import Detail, RuleState

type DetailsByTarget = dict[str, Detail]


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """What the caller should do with the key once a pass returns.

    ``requeue`` asks for an immediate (rate-limited) retry, ``requeue_after`` for a
    delayed one. Failures are raised rather than returned.
    """

    requeue: bool = False
    requeue_after: timedelta | None = None


@dataclass(slots=True)
class MergedStageResults:
    """Accumulated outcome of every stage in one pass."""

    interval: timedelta | None = None
    retry: bool = False
    rule_states: list[RuleState] = field(default_factory=list)
    details: DetailsByTarget = field(default_factory=dict)
