"""Concurrent evaluation of the configured rule stages.

Each stage is evaluated on its own worker. Results are folded into one
``MergedStageResults`` under a single lock that is held only for the fold, never
while an evaluator runs. All stages are joined before the merged result is
returned; a failing stage never cancels the others.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING

from rulekeeper.domain.model import Detail
from rulekeeper.domain.ports.evaluation import StageResult

from .contracts import MergedStageResults

if TYPE_CHECKING:
    from collections.abc import Mapping

    from rulekeeper.domain.model import RuleSet, Target
    from rulekeeper.domain.ports import RuleEvaluator, StageProvider

    from .contracts import DetailsByTarget

log = getLogger(__name__)


def merge_stage_result(
    merged: MergedStageResults,
    stage: str,
    result: StageResult,
    *,
    stage_order: Mapping[str, int] | None = None,
) -> None:
    """Fold one stage's result into ``merged``; the caller serialises calls."""

    if result.interval is not None:
        if merged.interval is None or result.interval < merged.interval:
            merged.interval = result.interval
    if result.retry:
        merged.retry = True
    merged.rule_states.extend(result.rule_states)
    merge_details(merged.details, stage, result, stage_order=stage_order)


def merge_details(
    details: DetailsByTarget,
    stage: str,
    result: StageResult,
    *,
    stage_order: Mapping[str, int] | None = None,
) -> None:
    """Append a stage's passed rules and rejection to each target's Detail.

    Targets named only in ``rejected`` get a Detail too, so a rejection is always
    visible in the status even when no rule passed for that target. A target
    rejected by any stage stays failed for the whole pass. ``Detail.stage``
    names the latest stage, in configured order, that reported on the target, so
    the value does not depend on which worker finished first.
    """

    order = stage_order or {}
    names = list(result.pass_rules)
    names.extend(name for name in result.rejected if name not in result.pass_rules)
    for name in names:
        detail = details.get(name)
        if detail is None:
            detail = Detail(name=name, stage=stage)
            details[name] = detail
        elif order.get(stage, -1) >= order.get(detail.stage, -1):
            detail.stage = stage
        detail.add_passed_rules(sorted(result.pass_rules.get(name, ())))
        rejection = result.rejected.get(name)
        if rejection is not None:
            detail.add_rejection(rejection)


@dataclass(slots=True)
class StageOrchestrator:
    stages: StageProvider
    evaluate: RuleEvaluator
    max_workers: int | None = None

    def run(self, ruleset: RuleSet, targets: Mapping[str, Target]) -> MergedStageResults:
        stages = list(self.stages.get_stages())
        merged = MergedStageResults()
        if not stages:
            return merged

        stage_order = {stage: index for index, stage in enumerate(stages)}
        view = MappingProxyType(dict(targets))
        lock = threading.Lock()

        def run_stage(stage: str) -> None:
            result = self._evaluate_stage(stage, ruleset, view)
            with lock:
                merge_stage_result(merged, stage, result, stage_order=stage_order)

        workers = self.max_workers or len(stages)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="stage") as pool:
            futures = [pool.submit(run_stage, stage) for stage in stages]
        for future in futures:
            future.result()
        return merged

    def _evaluate_stage(
        self,
        stage: str,
        ruleset: RuleSet,
        targets: Mapping[str, Target],
    ) -> StageResult:
        try:
            return self.evaluate(stage, ruleset, targets)
        except Exception:
            log.exception("Stage %s failed for RuleSet %s; treating it as empty", stage, ruleset.key)
            return StageResult()
