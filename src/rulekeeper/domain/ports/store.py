"""Ports for reading and writing cluster objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from rulekeeper.domain.model import LabelSelector, ObjectKey, RuleSet, Target


@runtime_checkable
class RuleSetRepository(Protocol):
    """Access to RuleSet objects.

    ``update`` writes metadata (finalizers), ``update_status`` writes only the status
    sub-resource. Both return the stored object with its new resource version and
    raise ``ConflictError`` when the caller's version is stale.
    """

    def get(self, key: ObjectKey) -> RuleSet: ...

    def list_in_namespace(self, namespace: str) -> list[RuleSet]: ...

    def update(self, ruleset: RuleSet) -> RuleSet: ...

    def update_status(self, ruleset: RuleSet) -> RuleSet: ...


@runtime_checkable
class TargetRepository(Protocol):
    """Access to Target objects."""

    def get(self, key: ObjectKey) -> Target: ...

    def list_by_selector(self, namespace: str, selector: LabelSelector) -> list[Target]: ...

    def update(self, target: Target) -> Target: ...


@dataclass(slots=True)
class ObjectStore:
    """Repositories the reconcile core reads from and writes to."""

    rulesets: RuleSetRepository
    targets: TargetRepository
