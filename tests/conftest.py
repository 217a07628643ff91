from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from rulekeeper.adapters.memory import InMemoryCluster
from rulekeeper.app import build_reconciler
from rulekeeper.domain.ports import StaticStageProvider
from tests.support.reconcile import (
    FakeEvaluator,
    RecordingEventRecorder,
    RecordingSink,
    no_sleep,
)

if TYPE_CHECKING:
    from rulekeeper.domain.reconcile import RuleSetReconciler

STAGES = ("pre-check", "canary", "rollout")


@pytest.fixture
def cluster() -> InMemoryCluster:
    return InMemoryCluster()


@pytest.fixture
def evaluator() -> FakeEvaluator:
    return FakeEvaluator()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def recorder() -> RecordingEventRecorder:
    return RecordingEventRecorder()


@pytest.fixture
def reconciler(
    cluster: InMemoryCluster,
    evaluator: FakeEvaluator,
    sink: RecordingSink,
    recorder: RecordingEventRecorder,
) -> RuleSetReconciler:
    return build_reconciler(
        cluster.object_store(),
        StaticStageProvider(STAGES),
        evaluator,
        sinks=[sink],
        recorder=recorder,
        sleep=no_sleep,
    )
