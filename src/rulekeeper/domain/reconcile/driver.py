"""Per-event entry point composing the reconcile components.

One pass, in order:
1) load the RuleSet and check its stale-view guard
2) list targets through the RuleSet's selector
3) if the RuleSet is terminating, run only the deletion lifecycle
4) ensure the clean-up finalizer, then check every listed target's guard
5) release targets no longer selected, claim the selected ones
6) evaluate all stages concurrently and merge their results
7) write the status if its content changed
8) notify downstream queues about targets whose Detail changed
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from rulekeeper.domain.errors import NotFoundError

from .contracts import ReconcileResult

if TYPE_CHECKING:
    from rulekeeper.domain.expectations import ResourceVersionExpectation
    from rulekeeper.domain.model import ObjectKey
    from rulekeeper.domain.ports import ObjectStore

    from .deletion import DeletionLifecycle
    from .notifier import ChangeNotifier
    from .ownership import OwnershipManager
    from .stages import StageOrchestrator
    from .status import StatusReconciler

log = getLogger(__name__)


@dataclass(slots=True)
class RuleSetReconciler:
    store: ObjectStore
    ruleset_expectations: ResourceVersionExpectation
    target_expectations: ResourceVersionExpectation
    ownership: OwnershipManager
    stages: StageOrchestrator
    status: StatusReconciler
    deletion: DeletionLifecycle
    notifier: ChangeNotifier

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        try:
            ruleset = self.store.rulesets.get(key)
        except NotFoundError:
            log.debug("RuleSet %s no longer exists", key)
            return ReconcileResult()

        if not self.ruleset_expectations.satisfied_expectations(key, ruleset.resource_version):
            log.info(
                "Expected RuleSet %s update past version %s, retry later",
                key,
                ruleset.resource_version,
            )
            return ReconcileResult()

        try:
            listed = self.store.targets.list_by_selector(ruleset.namespace, ruleset.selector)
        except Exception:
            log.exception("Failed to list targets for RuleSet %s", key)
            raise

        if ruleset.is_terminating:
            return self.deletion.finalize(ruleset, listed)

        current = self.deletion.ensure_finalizer(ruleset)
        if current is None:
            log.debug("RuleSet %s disappeared while adding its finalizer", key)
            return ReconcileResult()
        ruleset = current

        for target in listed:
            if not self.target_expectations.satisfied_expectations(
                target.key, target.resource_version
            ):
                log.info(
                    "Expected target %s update past version %s, retry later",
                    target.key,
                    target.resource_version,
                )
                return ReconcileResult()

        selected = {target.name: target for target in listed}
        self.ownership.sync(ruleset, selected)

        merged = self.stages.run(ruleset, selected)
        new_status = self.status.build(ruleset, selected, merged)
        old_details = ruleset.status.details_by_name()
        self.status.apply(ruleset, new_status)
        self.notifier.notify(ruleset.namespace, old_details, new_status.details_by_name())

        return ReconcileResult(requeue=merged.retry, requeue_after=merged.interval)
