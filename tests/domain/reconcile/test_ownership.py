from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from rulekeeper.config.reconcile import OWNERSHIP_ANNOTATION
from rulekeeper.domain.errors import StoreError
from rulekeeper.domain.expectations import ResourceVersionExpectation
from rulekeeper.domain.model import ObjectKey, RuleSetStatus
from rulekeeper.domain.reconcile import OwnershipManager, selection_delta
from tests.support.reconcile import make_ruleset, make_target, no_sleep

if TYPE_CHECKING:
    from rulekeeper.adapters.memory import InMemoryCluster
    from rulekeeper.domain.model import Target


def _owners(cluster: InMemoryCluster, name: str) -> list[str]:
    return cluster.targets.get(ObjectKey("default", name)).owners(OWNERSHIP_ANNOTATION)


def _manager(cluster: InMemoryCluster) -> tuple[OwnershipManager, ResourceVersionExpectation]:
    expectations = ResourceVersionExpectation("targets")
    return OwnershipManager(cluster.targets, expectations, sleep=no_sleep), expectations


def test_selection_delta_releases_dropped_and_claims_selected() -> None:
    delta = selection_delta(["x", "y"], ["z", "y"])

    assert delta.release == ("x",)
    assert delta.claim == ("y", "z")


def test_sync_moves_ownership_to_new_selection(cluster: InMemoryCluster) -> None:
    for name in ("x", "y", "z"):
        cluster.create_target(make_target(name))
    manager, _ = _manager(cluster)
    ruleset = make_ruleset()
    ruleset.status = RuleSetStatus(targets=["x", "y"])
    manager.claim(ruleset, "x")
    manager.claim(ruleset, "y")

    selected = {name: cluster.targets.get(ObjectKey("default", name)) for name in ("y", "z")}
    manager.sync(ruleset, selected)

    assert _owners(cluster, "x") == []
    assert _owners(cluster, "y") == ["policy"]
    assert _owners(cluster, "z") == ["policy"]


def test_claim_keeps_other_owners(cluster: InMemoryCluster) -> None:
    cluster.create_target(
        make_target("x", annotations={OWNERSHIP_ANNOTATION: '["other"]'})
    )
    manager, _ = _manager(cluster)

    manager.claim(make_ruleset(), "x")

    assert _owners(cluster, "x") == ["other", "policy"]


def test_claim_twice_writes_once(cluster: InMemoryCluster) -> None:
    created = cluster.create_target(make_target("x"))
    manager, _ = _manager(cluster)

    manager.claim(make_ruleset(), "x")
    first = cluster.targets.get(created.key)
    manager.claim(make_ruleset(), "x")
    second = cluster.targets.get(created.key)

    assert first.resource_version == second.resource_version


def test_write_arms_target_expectation(cluster: InMemoryCluster) -> None:
    created = cluster.create_target(make_target("x"))
    manager, expectations = _manager(cluster)

    manager.claim(make_ruleset(), "x")

    assert expectations.pending(created.key)
    assert not expectations.satisfied_expectations(created.key, created.resource_version)
    updated = cluster.targets.get(created.key)
    assert expectations.satisfied_expectations(created.key, updated.resource_version)


def test_release_of_missing_target_is_success(cluster: InMemoryCluster) -> None:
    manager, expectations = _manager(cluster)

    manager.release(make_ruleset(), "gone")

    assert not expectations.pending(ObjectKey("default", "gone"))


def test_failed_write_clears_expectation_and_propagates(cluster: InMemoryCluster) -> None:
    created = cluster.create_target(make_target("x"))

    class _BrokenTargets:
        def get(self, key: ObjectKey) -> Target:
            return cluster.targets.get(key)

        def list_by_selector(self, namespace: str, selector: object) -> list[Target]:
            raise NotImplementedError

        def update(self, target: Target) -> Target:
            raise StoreError("write refused")

    expectations = ResourceVersionExpectation("targets")
    manager = OwnershipManager(_BrokenTargets(), expectations, sleep=no_sleep)

    with pytest.raises(StoreError, match="write refused"):
        manager.claim(make_ruleset(), "x")

    assert not expectations.pending(created.key)


def test_release_all_uses_recorded_targets(cluster: InMemoryCluster) -> None:
    for name in ("x", "y"):
        cluster.create_target(make_target(name))
    manager, _ = _manager(cluster)
    ruleset = make_ruleset()
    manager.claim(ruleset, "x")
    manager.claim(ruleset, "y")
    ruleset.status = RuleSetStatus(targets=["x", "y"])

    manager.release_all(ruleset)

    assert _owners(cluster, "x") == []
    assert _owners(cluster, "y") == []


def test_released_target_record_expires_without_another_listing(
    cluster: InMemoryCluster,
) -> None:
    cluster.create_target(make_target("x", annotations={OWNERSHIP_ANNOTATION: '["policy"]'}))
    cluster.create_target(make_target("y"))
    now = [100.0]
    expectations = ResourceVersionExpectation(
        "targets", timeout=timedelta(minutes=5), clock=lambda: now[0]
    )
    manager = OwnershipManager(cluster.targets, expectations, sleep=no_sleep)
    ruleset = make_ruleset()
    ruleset.status = RuleSetStatus(targets=["x"])

    manager.sync(ruleset, {})
    released = ObjectKey("default", "x")
    assert expectations.pending(released)

    now[0] += timedelta(minutes=5, seconds=1).total_seconds()
    manager.claim(ruleset, "y")

    assert not expectations.pending(released)
    assert expectations.pending(ObjectKey("default", "y"))
