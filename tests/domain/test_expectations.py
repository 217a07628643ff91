from __future__ import annotations

from datetime import timedelta

from rulekeeper.domain.expectations import ResourceVersionExpectation
from rulekeeper.domain.model import ObjectKey

KEY = ObjectKey("ns", "policy")


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_unarmed_key_is_satisfied() -> None:
    guard = ResourceVersionExpectation("rulesets")

    assert guard.satisfied_expectations(KEY, "1")


def test_armed_key_waits_for_newer_version() -> None:
    guard = ResourceVersionExpectation("rulesets")
    guard.expect_update(KEY, "7")

    assert not guard.satisfied_expectations(KEY, "7")
    assert not guard.satisfied_expectations(KEY, "6")
    assert guard.pending(KEY)

    assert guard.satisfied_expectations(KEY, "8")
    assert not guard.pending(KEY)
    assert guard.satisfied_expectations(KEY, "7")


def test_versions_compare_numerically() -> None:
    guard = ResourceVersionExpectation("rulesets")
    guard.expect_update(KEY, "9")

    assert guard.satisfied_expectations(KEY, "10")


def test_delete_clears_record() -> None:
    guard = ResourceVersionExpectation("rulesets")
    guard.expect_update(KEY, "3")

    guard.delete_expectations(KEY)

    assert guard.satisfied_expectations(KEY, "3")


def test_expectation_times_out() -> None:
    clock = _Clock()
    guard = ResourceVersionExpectation("rulesets", timeout=timedelta(seconds=30), clock=clock)
    guard.expect_update(KEY, "3")

    clock.now += 29
    assert not guard.satisfied_expectations(KEY, "3")

    clock.now += 2
    assert guard.satisfied_expectations(KEY, "3")
    assert not guard.pending(KEY)


def test_keys_are_independent() -> None:
    guard = ResourceVersionExpectation("targets")
    other = ObjectKey("ns", "other")
    guard.expect_update(KEY, "3")

    assert guard.satisfied_expectations(other, "1")
    assert not guard.satisfied_expectations(KEY, "3")


def test_arming_drops_expired_records_of_other_keys() -> None:
    clock = _Clock()
    guard = ResourceVersionExpectation("targets", timeout=timedelta(seconds=30), clock=clock)
    released = ObjectKey("ns", "released")
    guard.expect_update(released, "4")

    clock.now += 31
    guard.expect_update(KEY, "3")

    assert not guard.pending(released)
    assert guard.pending(KEY)
    assert len(guard) == 1


def test_sweep_keeps_fresh_records() -> None:
    clock = _Clock()
    guard = ResourceVersionExpectation("targets", timeout=timedelta(seconds=30), clock=clock)
    guard.expect_update(KEY, "3")
    clock.now += 20
    guard.expect_update(ObjectKey("ns", "other"), "5")

    clock.now += 15

    assert guard.sweep() == 1
    assert not guard.pending(KEY)
    assert guard.pending(ObjectKey("ns", "other"))
