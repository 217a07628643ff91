"""Canonical status snapshots and the guarded status write."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from rulekeeper.domain.model import Detail, RuleSetStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from rulekeeper.domain.expectations import ResourceVersionExpectation
    from rulekeeper.domain.model import RuleSet, RuleState
    from rulekeeper.domain.ports import RuleSetRepository

    from .contracts import MergedStageResults

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def canonical_details(details: Mapping[str, Detail]) -> list[Detail]:
    """Details sorted by target name, with order-insensitive lists sorted too."""

    canonical: list[Detail] = []
    for name in sorted(details):
        detail = details[name]
        canonical.append(
            Detail(
                name=detail.name,
                stage=detail.stage,
                passed_rules=sorted(detail.passed_rules),
                reject_info=sorted(
                    detail.reject_info, key=lambda info: (info.rule_name, info.reason)
                ),
            )
        )
    return canonical


def canonical_rule_states(rule_states: Iterable[RuleState]) -> list[RuleState]:
    return sorted(rule_states, key=lambda state: state.name)


def build_status(
    ruleset: RuleSet,
    selected: Iterable[str],
    merged: MergedStageResults,
    *,
    now: datetime,
) -> RuleSetStatus:
    return RuleSetStatus(
        targets=sorted(set(selected)),
        observed_generation=ruleset.generation,
        details=canonical_details(merged.details),
        rule_states=canonical_rule_states(merged.rule_states),
        update_time=now,
    )


@dataclass(slots=True)
class StatusReconciler:
    """Write a RuleSet status only when its content changed.

    Skipping identical writes is what keeps a pass from triggering another pass
    through its own watch event forever.
    """

    rulesets: RuleSetRepository
    expectations: ResourceVersionExpectation
    clock: Callable[[], datetime] = _utcnow

    def build(
        self,
        ruleset: RuleSet,
        selected: Iterable[str],
        merged: MergedStageResults,
    ) -> RuleSetStatus:
        return build_status(ruleset, selected, merged, now=self.clock())

    def apply(self, ruleset: RuleSet, status: RuleSetStatus) -> bool:
        """Persist ``status`` if it differs from the stored one; return whether it wrote."""

        if status.same_content(ruleset.status):
            return False

        key = ruleset.key
        self.expectations.expect_update(key, ruleset.resource_version)
        try:
            self.rulesets.update_status(replace(ruleset, status=status))
        except Exception:
            self.expectations.delete_expectations(key)
            log.exception("Failed to update RuleSet %s status", key)
            raise
        log.debug("Updated RuleSet %s status from version %s", key, ruleset.resource_version)
        return True
