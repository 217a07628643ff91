"""RuleSet policy objects and their status snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .keys import ObjectKey
from .selector import LabelSelector

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class RejectInfo:
    rule_name: str
    reason: str


@dataclass(frozen=True, slots=True)
class RuleState:
    """Aggregate state a stage reports for one of its rules."""

    name: str
    webhook_status: dict[str, Any] | None = None


@dataclass(slots=True)
class Detail:
    """Per-target outcome of the most recent reconcile pass.

    ``passed`` is derived: it is true exactly when ``reject_info`` is empty, and is
    recomputed whenever rules or rejections are appended.
    """

    name: str
    stage: str
    passed_rules: list[str] = field(default_factory=list)
    reject_info: list[RejectInfo] = field(default_factory=list)
    passed: bool = field(init=False, default=True)

    def __post_init__(self) -> None:
        self.passed = not self.reject_info

    def add_passed_rules(self, rules: Iterable[str]) -> None:
        self.passed_rules.extend(rules)
        self.passed = not self.reject_info

    def add_rejection(self, info: RejectInfo) -> None:
        self.reject_info.append(info)
        self.passed = not self.reject_info


@dataclass(slots=True)
class RuleSetStatus:
    targets: list[str] = field(default_factory=list)
    observed_generation: int = 0
    details: list[Detail] = field(default_factory=list)
    rule_states: list[RuleState] = field(default_factory=list)
    update_time: datetime | None = None

    def details_by_name(self) -> dict[str, Detail]:
        return {detail.name: detail for detail in self.details}

    def same_content(self, other: RuleSetStatus) -> bool:
        """Compare everything except ``update_time``, which differs on every build."""

        return (
            self.targets == other.targets
            and self.details == other.details
            and self.rule_states == other.rule_states
            and self.observed_generation == other.observed_generation
        )


@dataclass(slots=True)
class RuleSet:
    """Policy selecting targets and the rule pipeline applied to them.

    ``rules`` is opaque to the reconcile core and is handed to the rule evaluator
    unchanged.
    """

    namespace: str
    name: str
    selector: LabelSelector = field(default_factory=LabelSelector)
    rules: list[dict[str, Any]] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    generation: int = 1
    resource_version: str = ""
    deletion_timestamp: datetime | None = None
    status: RuleSetStatus = field(default_factory=RuleSetStatus)

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @property
    def is_terminating(self) -> bool:
        return self.deletion_timestamp is not None

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    def add_finalizer(self, finalizer: str) -> bool:
        if finalizer in self.finalizers:
            return False
        self.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        if finalizer not in self.finalizers:
            return False
        self.finalizers = [value for value in self.finalizers if value != finalizer]
        return True
