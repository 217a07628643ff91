from __future__ import annotations

from rulekeeper.domain.model import Detail, ObjectKey, RejectInfo
from rulekeeper.domain.reconcile import ChangeNotifier, changed_targets
from tests.support.reconcile import RecordingSink


def _passed(name: str) -> Detail:
    return Detail(name=name, stage="canary", passed_rules=["r1"])


def _rejected(name: str) -> Detail:
    return Detail(name=name, stage="canary", reject_info=[RejectInfo("r1", "nope")])


def test_changed_targets_covers_changed_added_and_removed() -> None:
    old = {"a": _passed("a"), "b": _rejected("b")}
    new = {"a": _passed("a"), "c": _passed("c")}

    assert changed_targets(old, new) == ["b", "c"]


def test_changed_targets_detects_outcome_flip() -> None:
    assert changed_targets({"a": _passed("a")}, {"a": _rejected("a")}) == ["a"]
    assert changed_targets({"a": _passed("a")}, {"a": _passed("a")}) == []


def test_notify_publishes_to_every_sink() -> None:
    first, second = RecordingSink(), RecordingSink()
    notifier = ChangeNotifier((first, second))

    changed = notifier.notify("ns", {"b": _rejected("b")}, {"c": _passed("c")})

    assert changed == ["b", "c"]
    expected = [ObjectKey("ns", "b"), ObjectKey("ns", "c")]
    assert first.keys == expected
    assert second.keys == expected


def test_notify_skips_sinks_that_are_shutting_down() -> None:
    closed, open_sink = RecordingSink(closed=True), RecordingSink()
    notifier = ChangeNotifier((closed, open_sink))

    notifier.notify("ns", {}, {"a": _passed("a")})

    assert closed.keys == []
    assert open_sink.keys == [ObjectKey("ns", "a")]


def test_failing_sink_does_not_block_others() -> None:
    class _BrokenSink(RecordingSink):
        def add(self, key: ObjectKey) -> None:
            raise RuntimeError("queue full")

    healthy = RecordingSink()
    notifier = ChangeNotifier((_BrokenSink(), healthy))

    notifier.notify("ns", {}, {"a": _passed("a")})

    assert healthy.keys == [ObjectKey("ns", "a")]


def test_notify_without_sinks_is_noop() -> None:
    assert ChangeNotifier().notify("ns", {}, {"a": _passed("a")}) == []
