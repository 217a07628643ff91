"""Thread-safe in-memory object store.

Behaves like an API server for the parts the reconcile core relies on: every write
bumps a store-wide resource version, writes based on a stale version raise
``ConflictError``, ``update`` never touches status and ``update_status`` touches
nothing but status, and deleting an object that still carries finalizers only
marks it terminating until the last finalizer is removed.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from rulekeeper.domain.errors import ConflictError, NotFoundError
from rulekeeper.domain.model import LabelSelector, ObjectKey, RuleSet, Target
from rulekeeper.domain.ports import ObjectStore, WatchEvent, WatchEventType

if TYPE_CHECKING:
    from collections.abc import Callable

    from rulekeeper.domain.ports import WatchListener


class _VersionCounter:
    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            self._value += 1
            return str(self._value)


class _Bucket[T: (RuleSet, Target)]:
    def __init__(self, kind: str, versions: _VersionCounter) -> None:
        self.kind = kind
        self._versions = versions
        self._objects: dict[ObjectKey, T] = {}
        self._lock = threading.RLock()
        self._listeners: list[WatchListener[T]] = []

    def watch(self, listener: WatchListener[T]) -> None:
        self._listeners.append(listener)

    def get(self, key: ObjectKey) -> T:
        with self._lock:
            stored = self._objects.get(key)
            if stored is None:
                raise NotFoundError(self.kind, key)
            return copy.deepcopy(stored)

    def values(self, namespace: str) -> list[T]:
        with self._lock:
            return [
                copy.deepcopy(obj)
                for key, obj in sorted(self._objects.items())
                if key.namespace == namespace
            ]

    def create(self, obj: T) -> T:
        with self._lock:
            if obj.key in self._objects:
                raise ConflictError(self.kind, obj.key, f"{self.kind} {obj.key} already exists")
            stored = copy.deepcopy(obj)
            stored.resource_version = self._versions.next()
            self._objects[obj.key] = stored
            result = copy.deepcopy(stored)
        self._emit(WatchEventType.ADDED, None, result)
        return result

    def write(self, obj: T, merge: Callable[[T, T], T]) -> T:
        """Store ``merge(stored, obj)`` if ``obj`` is based on the stored version."""

        with self._lock:
            stored = self._objects.get(obj.key)
            if stored is None:
                raise NotFoundError(self.kind, obj.key)
            if obj.resource_version != stored.resource_version:
                raise ConflictError(self.kind, obj.key)
            updated = merge(copy.deepcopy(stored), copy.deepcopy(obj))
            updated.resource_version = self._versions.next()
            old = copy.deepcopy(stored)
            if _is_released(updated):
                del self._objects[obj.key]
                event = WatchEventType.DELETED
            else:
                self._objects[obj.key] = updated
                event = WatchEventType.MODIFIED
            result = copy.deepcopy(updated)
        self._emit(event, old, result)
        return result

    def delete(self, key: ObjectKey, *, now: datetime | None = None) -> None:
        with self._lock:
            stored = self._objects.get(key)
            if stored is None:
                raise NotFoundError(self.kind, key)
            old = copy.deepcopy(stored)
            if _has_finalizers(stored):
                if stored.deletion_timestamp is None:
                    stored.deletion_timestamp = now or datetime.now(UTC)
                    stored.resource_version = self._versions.next()
                event = WatchEventType.MODIFIED
                new: T | None = copy.deepcopy(stored)
            else:
                del self._objects[key]
                event = WatchEventType.DELETED
                new = None
        self._emit(event, old, new)

    def _emit(self, event_type: WatchEventType, old: T | None, new: T | None) -> None:
        for listener in list(self._listeners):
            listener(WatchEvent(type=event_type, old=old, new=new))


def _has_finalizers(obj: RuleSet | Target) -> bool:
    return isinstance(obj, RuleSet) and bool(obj.finalizers)


def _is_released(obj: RuleSet | Target) -> bool:
    return (
        isinstance(obj, RuleSet) and obj.deletion_timestamp is not None and not obj.finalizers
    )


def _merge_ruleset_metadata(stored: RuleSet, incoming: RuleSet) -> RuleSet:
    spec_changed = stored.selector != incoming.selector or stored.rules != incoming.rules
    return replace(
        incoming,
        status=stored.status,
        deletion_timestamp=stored.deletion_timestamp,
        generation=stored.generation + 1 if spec_changed else stored.generation,
    )


def _merge_ruleset_status(stored: RuleSet, incoming: RuleSet) -> RuleSet:
    stored.status = incoming.status
    return stored


def _merge_target(stored: Target, incoming: Target) -> Target:
    return replace(incoming, deletion_timestamp=stored.deletion_timestamp)


class InMemoryRuleSetRepository:
    def __init__(self, bucket: _Bucket[RuleSet]) -> None:
        self._bucket = bucket

    def get(self, key: ObjectKey) -> RuleSet:
        return self._bucket.get(key)

    def list_in_namespace(self, namespace: str) -> list[RuleSet]:
        return self._bucket.values(namespace)

    def update(self, ruleset: RuleSet) -> RuleSet:
        return self._bucket.write(ruleset, _merge_ruleset_metadata)

    def update_status(self, ruleset: RuleSet) -> RuleSet:
        return self._bucket.write(ruleset, _merge_ruleset_status)


class InMemoryTargetRepository:
    def __init__(self, bucket: _Bucket[Target]) -> None:
        self._bucket = bucket

    def get(self, key: ObjectKey) -> Target:
        return self._bucket.get(key)

    def list_by_selector(self, namespace: str, selector: LabelSelector) -> list[Target]:
        return [
            target for target in self._bucket.values(namespace) if selector.matches(target.labels)
        ]

    def update(self, target: Target) -> Target:
        return self._bucket.write(target, _merge_target)


class InMemoryCluster:
    """Owns the buckets and exposes both the ports and test/admin helpers."""

    def __init__(self) -> None:
        versions = _VersionCounter()
        self._rulesets: _Bucket[RuleSet] = _Bucket("RuleSet", versions)
        self._targets: _Bucket[Target] = _Bucket("Target", versions)
        self.rulesets = InMemoryRuleSetRepository(self._rulesets)
        self.targets = InMemoryTargetRepository(self._targets)

    def object_store(self) -> ObjectStore:
        return ObjectStore(rulesets=self.rulesets, targets=self.targets)

    def create_ruleset(self, ruleset: RuleSet) -> RuleSet:
        return self._rulesets.create(ruleset)

    def create_target(self, target: Target) -> Target:
        return self._targets.create(target)

    def delete_ruleset(self, key: ObjectKey) -> None:
        self._rulesets.delete(key)

    def delete_target(self, key: ObjectKey) -> None:
        self._targets.delete(key)

    def mark_target_terminating(self, key: ObjectKey) -> Target:
        """Set a deletion marker on a target without removing it."""

        current = self._targets.get(key)
        current.deletion_timestamp = datetime.now(UTC)
        return self._targets.write(current, lambda _stored, incoming: incoming)

    def watch_rulesets(self, listener: WatchListener[RuleSet]) -> None:
        self._rulesets.watch(listener)

    def watch_targets(self, listener: WatchListener[Target]) -> None:
        self._targets.watch(listener)
