"""Reconcile core for RuleSet policies.

The driver composes small components that each own one concern: the ownership
annotation lifecycle, concurrent stage evaluation, idempotent status writes,
deletion gating, and change notification. Collaborators (object store, rule
evaluator, stage provider, notification sinks) are injected through the ports in
``rulekeeper.domain.ports``.
"""

from __future__ import annotations

from .contracts import MergedStageResults, ReconcileResult
from .deletion import DeletionLifecycle, LifecycleState
from .driver import RuleSetReconciler
from .notifier import ChangeNotifier, changed_targets
from .ownership import OwnershipManager, SelectionDelta, selection_delta
from .retry import update_with_retry
from .stages import StageOrchestrator, merge_details, merge_stage_result
from .status import StatusReconciler, build_status

__all__ = [
    "ChangeNotifier",
    "DeletionLifecycle",
    "LifecycleState",
    "MergedStageResults",
    "OwnershipManager",
    "ReconcileResult",
    "RuleSetReconciler",
    "SelectionDelta",
    "StageOrchestrator",
    "StatusReconciler",
    "build_status",
    "changed_targets",
    "merge_details",
    "merge_stage_result",
    "selection_delta",
    "update_with_retry",
]
