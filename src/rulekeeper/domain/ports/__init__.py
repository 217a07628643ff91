"""Domain port definitions for adapters."""

from __future__ import annotations

from .evaluation import RuleEvaluator, StageProvider, StageResult, StaticStageProvider
from .notification import EventRecorder, EventType, NotificationSink
from .store import ObjectStore, RuleSetRepository, TargetRepository
from .watch import WatchEvent, WatchEventType, WatchListener

__all__ = [
    "EventRecorder",
    "EventType",
    "NotificationSink",
    "ObjectStore",
    "RuleEvaluator",
    "RuleSetRepository",
    "StageProvider",
    "StageResult",
    "StaticStageProvider",
    "TargetRepository",
    "WatchEvent",
    "WatchEventType",
    "WatchListener",
]
