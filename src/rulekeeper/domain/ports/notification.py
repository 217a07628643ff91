"""Ports for change notifications and warning events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from rulekeeper.domain.model import ObjectKey, RuleSet

EventType = Literal["Normal", "Warning"]


@runtime_checkable
class NotificationSink(Protocol):
    """Queue accepting target keys whose evaluated outcome changed."""

    def add(self, key: ObjectKey) -> None: ...

    def shutting_down(self) -> bool: ...


@runtime_checkable
class EventRecorder(Protocol):
    """Records user-facing events about a RuleSet."""

    def event(self, ruleset: RuleSet, event_type: EventType, reason: str, message: str) -> None: ...
