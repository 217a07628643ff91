from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from rulekeeper.config.reconcile import FINALIZER, OWNERSHIP_ANNOTATION, TERMINATING_LABEL
from rulekeeper.domain.errors import NotFoundError
from rulekeeper.domain.expectations import ResourceVersionExpectation
from rulekeeper.domain.model import ObjectKey, RuleSetStatus
from rulekeeper.domain.reconcile import DeletionLifecycle, LifecycleState, OwnershipManager
from rulekeeper.domain.reconcile.deletion import BLOCK_PROTECTION_REASON
from tests.support.reconcile import (
    RecordingEventRecorder,
    make_ruleset,
    make_target,
    no_sleep,
    with_finalizer,
)

if TYPE_CHECKING:
    from rulekeeper.adapters.memory import InMemoryCluster
    from rulekeeper.domain.model import RuleSet


def _lifecycle(
    cluster: InMemoryCluster, recorder: RecordingEventRecorder
) -> DeletionLifecycle:
    ownership = OwnershipManager(
        cluster.targets, ResourceVersionExpectation("targets"), sleep=no_sleep
    )
    return DeletionLifecycle(cluster.rulesets, ownership, recorder, sleep=no_sleep)


def _terminating(cluster: InMemoryCluster, ruleset: RuleSet) -> RuleSet:
    created = cluster.create_ruleset(ruleset)
    cluster.delete_ruleset(created.key)
    return cluster.rulesets.get(created.key)


def test_state_of_live_ruleset_is_active(
    cluster: InMemoryCluster, recorder: RecordingEventRecorder
) -> None:
    lifecycle = _lifecycle(cluster, recorder)

    assert lifecycle.state(make_ruleset(), []) is LifecycleState.ACTIVE


def test_ensure_finalizer_adds_once(
    cluster: InMemoryCluster, recorder: RecordingEventRecorder
) -> None:
    created = cluster.create_ruleset(make_ruleset())
    lifecycle = _lifecycle(cluster, recorder)

    updated = lifecycle.ensure_finalizer(created)

    assert updated is not None
    assert updated.finalizers == [FINALIZER]
    assert lifecycle.ensure_finalizer(updated) is updated
    assert cluster.rulesets.get(created.key).finalizers == [FINALIZER]


def test_ensure_finalizer_on_vanished_ruleset_returns_none(
    cluster: InMemoryCluster, recorder: RecordingEventRecorder
) -> None:
    lifecycle = _lifecycle(cluster, recorder)

    assert lifecycle.ensure_finalizer(make_ruleset()) is None


def test_running_target_blocks_deletion(
    cluster: InMemoryCluster, recorder: RecordingEventRecorder
) -> None:
    target = cluster.create_target(
        make_target("pod-a", annotations={OWNERSHIP_ANNOTATION: '["policy"]'})
    )
    ruleset = with_finalizer(make_ruleset())
    ruleset.status = RuleSetStatus(targets=["pod-a"])
    ruleset = _terminating(cluster, ruleset)
    lifecycle = _lifecycle(cluster, recorder)

    result = lifecycle.finalize(ruleset, [target])

    assert result.requeue_after == timedelta(seconds=5)
    assert cluster.rulesets.get(ruleset.key).finalizers == [FINALIZER]
    assert cluster.targets.get(target.key).owners(OWNERSHIP_ANNOTATION) == ["policy"]
    assert cluster.targets.get(target.key).resource_version == target.resource_version
    assert len(recorder.events) == 1
    key, event_type, reason, message = recorder.events[0]
    assert key == ruleset.key
    assert event_type == "Warning"
    assert reason == BLOCK_PROTECTION_REASON
    assert TERMINATING_LABEL in message


def test_terminating_targets_do_not_block(
    cluster: InMemoryCluster, recorder: RecordingEventRecorder
) -> None:
    created = cluster.create_target(make_target("pod-a"))
    target = cluster.mark_target_terminating(created.key)
    ruleset = _terminating(cluster, with_finalizer(make_ruleset()))
    lifecycle = _lifecycle(cluster, recorder)

    assert lifecycle.state(ruleset, [target]) is LifecycleState.CLEANING_UP
    assert lifecycle.finalize(ruleset, [target]).requeue_after is None
    with pytest.raises(NotFoundError):
        cluster.rulesets.get(ruleset.key)


def test_force_label_overrides_running_targets(
    cluster: InMemoryCluster, recorder: RecordingEventRecorder
) -> None:
    target = cluster.create_target(
        make_target("pod-a", annotations={OWNERSHIP_ANNOTATION: '["policy"]'})
    )
    ruleset = with_finalizer(make_ruleset(labels={TERMINATING_LABEL: "true"}))
    ruleset.status = RuleSetStatus(targets=["pod-a"])
    ruleset = _terminating(cluster, ruleset)
    lifecycle = _lifecycle(cluster, recorder)

    result = lifecycle.finalize(ruleset, [target])

    assert result.requeue_after is None
    assert recorder.events == []
    assert cluster.targets.get(target.key).owners(OWNERSHIP_ANNOTATION) == []
    with pytest.raises(NotFoundError):
        cluster.rulesets.get(ruleset.key)


def test_foreign_finalizer_keeps_ruleset_after_clean_up(
    cluster: InMemoryCluster, recorder: RecordingEventRecorder
) -> None:
    ruleset = with_finalizer(make_ruleset())
    ruleset.finalizers.append("example.com/other")
    ruleset = _terminating(cluster, ruleset)
    lifecycle = _lifecycle(cluster, recorder)

    lifecycle.finalize(ruleset, [])

    remaining = cluster.rulesets.get(ObjectKey("default", "policy"))
    assert remaining.finalizers == ["example.com/other"]
    assert lifecycle.state(remaining, []) is LifecycleState.REMOVED
