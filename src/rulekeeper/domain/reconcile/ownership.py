"""Ownership markers linking a RuleSet to the targets it currently selects."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from rulekeeper.config.reconcile import OWNERSHIP_ANNOTATION, RetryBackoff
from rulekeeper.domain.model import ObjectKey

from .retry import update_with_retry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from rulekeeper.domain.expectations import ResourceVersionExpectation
    from rulekeeper.domain.model import RuleSet, Target
    from rulekeeper.domain.ports import TargetRepository

log = getLogger(__name__)

type OwnershipMutation = Callable[[Target, str], bool]


@dataclass(frozen=True, slots=True)
class SelectionDelta:
    """Targets to release (recorded, no longer selected) and to claim (selected)."""

    release: tuple[str, ...]
    claim: tuple[str, ...]


def selection_delta(recorded: Iterable[str], selected: Iterable[str]) -> SelectionDelta:
    selected_names = sorted(set(selected))
    chosen = set(selected_names)
    release = sorted({name for name in recorded if name not in chosen})
    return SelectionDelta(release=tuple(release), claim=tuple(selected_names))


def ownership_mutations(annotation: str) -> tuple[OwnershipMutation, OwnershipMutation]:
    """Return idempotent ``(add, remove)`` mutations for ``annotation``."""

    def add_owner(target: Target, ruleset_name: str) -> bool:
        owners = target.owners(annotation)
        if ruleset_name in owners:
            return False
        target.set_owners(annotation, [*owners, ruleset_name])
        return True

    def remove_owner(target: Target, ruleset_name: str) -> bool:
        owners = target.owners(annotation)
        if ruleset_name not in owners:
            return False
        target.set_owners(annotation, [name for name in owners if name != ruleset_name])
        return True

    return add_owner, remove_owner


@dataclass(slots=True)
class OwnershipManager:
    """Adds and removes the RuleSet's name in the targets' ownership annotation.

    Every write arms the target expectation at the version it was based on, so a
    following pass that still sees the old version in its listing backs off.
    """

    targets: TargetRepository
    expectations: ResourceVersionExpectation
    annotation: str = OWNERSHIP_ANNOTATION
    backoff: RetryBackoff = field(default_factory=RetryBackoff)
    sleep: Callable[[float], None] = time.sleep

    def sync(self, ruleset: RuleSet, selected: Mapping[str, Target]) -> SelectionDelta:
        delta = selection_delta(ruleset.status.targets, selected)
        for name in delta.release:
            self.release(ruleset, name)
        for name in delta.claim:
            self.claim(ruleset, name)
        return delta

    def claim(self, ruleset: RuleSet, target_name: str) -> None:
        add_owner, _ = ownership_mutations(self.annotation)
        self._apply(ruleset, target_name, add_owner)

    def release(self, ruleset: RuleSet, target_name: str) -> None:
        _, remove_owner = ownership_mutations(self.annotation)
        self._apply(ruleset, target_name, remove_owner)

    def release_all(self, ruleset: RuleSet) -> None:
        for name in ruleset.status.targets:
            self.release(ruleset, name)

    def _apply(self, ruleset: RuleSet, target_name: str, mutation: OwnershipMutation) -> None:
        key = ObjectKey(ruleset.namespace, target_name)

        def write(target: Target) -> Target:
            self.expectations.expect_update(key, target.resource_version)
            try:
                return self.targets.update(target)
            except Exception:
                self.expectations.delete_expectations(key)
                raise

        try:
            update_with_retry(
                lambda: self.targets.get(key),
                lambda target: mutation(target, ruleset.name),
                write,
                backoff=self.backoff,
                sleep=self.sleep,
            )
        except Exception:
            log.info("Failed to update RuleSet %s ownership on target %s", ruleset.key, key)
            raise
