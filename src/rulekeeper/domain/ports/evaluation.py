"""Ports for the rule pipeline: stage ordering and per-stage evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import timedelta

    from rulekeeper.domain.model import RejectInfo, RuleSet, RuleState, Target


@dataclass(slots=True)
class StageResult:
    """Outcome of evaluating one stage against the selected targets.

    ``interval`` is an advisory delay before the next evaluation; ``retry`` asks for
    an immediate requeue.
    """

    interval: timedelta | None = None
    rule_states: list[RuleState] = field(default_factory=list)
    retry: bool = False
    pass_rules: dict[str, set[str]] = field(default_factory=dict)
    rejected: dict[str, RejectInfo] = field(default_factory=dict)


@runtime_checkable
class StageProvider(Protocol):
    """Supplies the ordered stage names configured for this installation."""

    def get_stages(self) -> Sequence[str]: ...


@runtime_checkable
class RuleEvaluator(Protocol):
    """Evaluates the rules of ``stage`` for ``ruleset`` against ``targets``."""

    def __call__(
        self,
        stage: str,
        ruleset: RuleSet,
        targets: Mapping[str, Target],
    ) -> StageResult: ...


@dataclass(frozen=True, slots=True)
class StaticStageProvider:
    stages: tuple[str, ...] = ()

    def get_stages(self) -> Sequence[str]:
        return self.stages
