"""Finalizer handling and deletion gating for RuleSets."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from rulekeeper.config.reconcile import (
    DEFAULT_BLOCKED_RECHECK,
    FINALIZER,
    TERMINATING_LABEL,
    RetryBackoff,
)

from .contracts import ReconcileResult
from .retry import update_with_retry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from rulekeeper.domain.model import RuleSet, Target
    from rulekeeper.domain.ports import EventRecorder, RuleSetRepository

    from .ownership import OwnershipManager

log = getLogger(__name__)

BLOCK_PROTECTION_REASON = "BlockProtection"


class LifecycleState(StrEnum):
    ACTIVE = "active"
    BLOCKED = "blocked"
    CLEANING_UP = "cleaning-up"
    REMOVED = "removed"


@dataclass(slots=True)
class DeletionLifecycle:
    """Keeps a RuleSet alive until no running target depends on it.

    ``Active`` RuleSets get the clean-up finalizer. A terminating RuleSet stays
    ``Blocked`` while a selected target is still running, unless the force-terminate
    label is set; once permitted, ownership is released from every recorded target
    and the finalizer is removed.
    """

    rulesets: RuleSetRepository
    ownership: OwnershipManager
    recorder: EventRecorder
    finalizer: str = FINALIZER
    terminating_label: str = TERMINATING_LABEL
    blocked_recheck: timedelta = DEFAULT_BLOCKED_RECHECK
    backoff: RetryBackoff = field(default_factory=RetryBackoff)
    sleep: Callable[[float], None] = time.sleep

    def state(self, ruleset: RuleSet, selected: Iterable[Target]) -> LifecycleState:
        if not ruleset.is_terminating:
            return LifecycleState.ACTIVE
        if not ruleset.has_finalizer(self.finalizer):
            return LifecycleState.REMOVED
        if self.terminating_label in ruleset.labels:
            return LifecycleState.CLEANING_UP
        if any(target.is_running for target in selected):
            return LifecycleState.BLOCKED
        return LifecycleState.CLEANING_UP

    def ensure_finalizer(self, ruleset: RuleSet) -> RuleSet | None:
        """Return the RuleSet carrying the finalizer, or ``None`` if it disappeared."""

        if ruleset.has_finalizer(self.finalizer):
            return ruleset
        updated = update_with_retry(
            lambda: self.rulesets.get(ruleset.key),
            lambda current: current.add_finalizer(self.finalizer),
            self.rulesets.update,
            backoff=self.backoff,
            sleep=self.sleep,
        )
        if updated is not None:
            log.debug("Added finalizer %s to RuleSet %s", self.finalizer, ruleset.key)
        return updated

    def finalize(self, ruleset: RuleSet, selected: Iterable[Target]) -> ReconcileResult:
        state = self.state(ruleset, selected)
        if state is LifecycleState.BLOCKED:
            message = (
                f"can not delete RuleSet {ruleset.key}: some targets are still waiting to be "
                f"processed by it. Terminate them first or label the RuleSet "
                f"{self.terminating_label}=true to force deletion"
            )
            self.recorder.event(ruleset, "Warning", BLOCK_PROTECTION_REASON, message)
            return ReconcileResult(requeue_after=self.blocked_recheck)
        if state is LifecycleState.CLEANING_UP:
            self.ownership.release_all(ruleset)
            update_with_retry(
                lambda: self.rulesets.get(ruleset.key),
                lambda current: current.remove_finalizer(self.finalizer),
                self.rulesets.update,
                backoff=self.backoff,
                sleep=self.sleep,
            )
            log.info("Released targets of RuleSet %s and removed its finalizer", ruleset.key)
        return ReconcileResult()
