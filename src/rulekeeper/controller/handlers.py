"""Map watch events onto the RuleSet keys that need a reconcile pass."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from rulekeeper.config.reconcile import OWNERSHIP_ANNOTATION

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rulekeeper.domain.model import ObjectKey, RuleSet, Target
    from rulekeeper.domain.ports import RuleSetRepository, WatchEvent

    from .queue import WorkQueue

log = getLogger(__name__)


def rulesets_for_targets(
    rulesets: Iterable[RuleSet],
    targets: Iterable[Target],
    *,
    annotation: str = OWNERSHIP_ANNOTATION,
) -> list[ObjectKey]:
    """Keys of RuleSets that select, own, or have recorded any of ``targets``."""

    versions = list(targets)
    keys: list[ObjectKey] = []
    for ruleset in rulesets:
        for target in versions:
            if (
                ruleset.selector.matches(target.labels)
                or ruleset.name in target.owners(annotation)
                or target.name in ruleset.status.targets
            ):
                keys.append(ruleset.key)
                break
    return sorted(keys)


@dataclass(slots=True)
class RuleSetEventHandler:
    queue: WorkQueue

    def __call__(self, event: WatchEvent[RuleSet]) -> None:
        for ruleset in event.objects[-1:]:
            self.queue.add(ruleset.key)


@dataclass(slots=True)
class TargetEventHandler:
    """Enqueue every RuleSet in the target's namespace affected by the change.

    Both the old and the new version are considered, so a RuleSet whose selector
    stopped matching still gets a pass to release the target.
    """

    rulesets: RuleSetRepository
    queue: WorkQueue
    annotation: str = OWNERSHIP_ANNOTATION

    def __call__(self, event: WatchEvent[Target]) -> None:
        versions = event.objects
        if not versions:
            return
        namespace = versions[-1].namespace
        try:
            candidates = self.rulesets.list_in_namespace(namespace)
        except Exception:
            log.exception("Failed to list RuleSets in %s for target event", namespace)
            return
        for key in rulesets_for_targets(candidates, versions, annotation=self.annotation):
            self.queue.add(key)
