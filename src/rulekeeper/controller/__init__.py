"""Controller plumbing around the reconcile core: queue, workers, event mapping."""

from __future__ import annotations

from .handlers import RuleSetEventHandler, TargetEventHandler, rulesets_for_targets
from .queue import ItemBackoff, WorkQueue
from .resync import ResyncLoop
from .runner import Controller

__all__ = [
    "Controller",
    "ItemBackoff",
    "ResyncLoop",
    "RuleSetEventHandler",
    "TargetEventHandler",
    "WorkQueue",
    "rulesets_for_targets",
]
