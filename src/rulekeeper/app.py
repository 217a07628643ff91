"""Application orchestration entry points."""

from __future__ import annotations

import importlib
import threading
import time
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any

from rulekeeper.adapters.events import LoggingEventRecorder
from rulekeeper.adapters.kube import build_kube_object_store
from rulekeeper.config import ReconcileConfig, get_kube_config, get_reconcile_config
from rulekeeper.controller import (
    Controller,
    ResyncLoop,
    RuleSetEventHandler,
    TargetEventHandler,
    WorkQueue,
)
from rulekeeper.domain.expectations import ResourceVersionExpectation
from rulekeeper.domain.ports import StaticStageProvider
from rulekeeper.domain.reconcile import (
    ChangeNotifier,
    DeletionLifecycle,
    OwnershipManager,
    RuleSetReconciler,
    StageOrchestrator,
    StatusReconciler,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from rulekeeper.adapters.memory import InMemoryCluster
    from rulekeeper.domain.model import ObjectKey
    from rulekeeper.domain.ports import (
        EventRecorder,
        NotificationSink,
        ObjectStore,
        RuleEvaluator,
        StageProvider,
    )
    from rulekeeper.domain.reconcile import ReconcileResult

log = getLogger(__name__)

CONTROLLER_NAME = "ruleset-controller"


def build_reconciler(
    store: ObjectStore,
    stage_provider: StageProvider,
    evaluator: RuleEvaluator,
    *,
    config: ReconcileConfig | None = None,
    sinks: Sequence[NotificationSink] = (),
    recorder: EventRecorder | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RuleSetReconciler:
    """Wire the reconcile components over ``store`` and the evaluation ports."""

    effective = config or ReconcileConfig()
    ruleset_expectations = ResourceVersionExpectation(
        "rulesets", timeout=effective.expectation_timeout
    )
    target_expectations = ResourceVersionExpectation(
        "targets", timeout=effective.expectation_timeout
    )

    ownership = OwnershipManager(
        store.targets,
        target_expectations,
        annotation=effective.ownership_annotation,
        backoff=effective.conflict_backoff,
        sleep=sleep,
    )
    deletion = DeletionLifecycle(
        store.rulesets,
        ownership,
        recorder or LoggingEventRecorder(),
        finalizer=effective.finalizer,
        terminating_label=effective.terminating_label,
        blocked_recheck=effective.blocked_recheck,
        backoff=effective.conflict_backoff,
        sleep=sleep,
    )
    return RuleSetReconciler(
        store=store,
        ruleset_expectations=ruleset_expectations,
        target_expectations=target_expectations,
        ownership=ownership,
        stages=StageOrchestrator(stage_provider, evaluator, effective.stage_workers),
        status=StatusReconciler(store.rulesets, ruleset_expectations),
        deletion=deletion,
        notifier=ChangeNotifier(tuple(sinks)),
    )


def load_object(path: str) -> Any:
    """Import ``module:attribute`` and return the attribute."""

    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    target: Any = module
    for part in attribute.split("."):
        target = getattr(target, part)
    return target


def load_evaluator(path: str) -> RuleEvaluator:
    """Load an evaluator; a class or factory is called once without arguments."""

    loaded = load_object(path)
    if isinstance(loaded, type):
        return loaded()
    return loaded


def reconcile_once(
    key: ObjectKey,
    *,
    stages: Sequence[str],
    evaluator: RuleEvaluator,
    store: ObjectStore | None = None,
    config: ReconcileConfig | None = None,
) -> ReconcileResult:
    """Run a single reconcile pass for ``key`` against the configured API server."""

    effective_config = config or get_reconcile_config()
    effective_store = store or build_kube_object_store(
        get_kube_config(), annotation=effective_config.ownership_annotation
    )
    reconciler = build_reconciler(
        effective_store,
        StaticStageProvider(tuple(stages)),
        evaluator,
        config=effective_config,
    )
    log.info("Reconciling RuleSet %s with stages %s", key, ", ".join(stages) or "<none>")
    result = reconciler.reconcile(key)
    log.info(
        "Finished RuleSet %s: requeue=%s, requeue_after=%s",
        key,
        result.requeue,
        result.requeue_after,
    )
    return result


def run_controller(
    namespaces: Sequence[str],
    *,
    stages: Sequence[str],
    evaluator: RuleEvaluator,
    store: ObjectStore | None = None,
    config: ReconcileConfig | None = None,
    resync_period: timedelta = timedelta(seconds=30),
    stop: threading.Event | None = None,
    sinks: Sequence[NotificationSink] = (),
) -> None:
    """Run the controller with periodic resync until ``stop`` is set.

    ``sinks`` are downstream queues told about targets whose Detail changed.
    """

    effective_config = config or get_reconcile_config()
    effective_store = store or build_kube_object_store(
        get_kube_config(), annotation=effective_config.ownership_annotation
    )
    queue = WorkQueue(CONTROLLER_NAME)
    reconciler = build_reconciler(
        effective_store,
        StaticStageProvider(tuple(stages)),
        evaluator,
        config=effective_config,
        sinks=sinks,
    )
    controller = Controller(
        CONTROLLER_NAME,
        reconciler,
        queue,
        workers=effective_config.max_concurrent_reconciles,
    )
    resync = ResyncLoop(
        effective_store.rulesets,
        queue,
        tuple(namespaces),
        resync_period,
        expectations=(reconciler.ruleset_expectations, reconciler.target_expectations),
    )
    stopped = stop or threading.Event()

    controller.start()
    resync_thread = threading.Thread(target=resync.run, name="resync", daemon=True)
    resync_thread.start()
    log.info("Watching RuleSets in namespaces: %s", ", ".join(namespaces))
    try:
        stopped.wait()
    finally:
        resync.stop()
        controller.stop()
        resync_thread.join()


def attach_cluster(
    cluster: InMemoryCluster,
    queue: WorkQueue,
    *,
    annotation: str,
) -> None:
    """Route the in-memory cluster's watch events into ``queue``."""

    cluster.watch_rulesets(RuleSetEventHandler(queue))
    cluster.watch_targets(TargetEventHandler(cluster.rulesets, queue, annotation))
