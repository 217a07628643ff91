"""Change events delivered by an object-store watch."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum


class WatchEventType(StrEnum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class WatchEvent[T]:
    type: WatchEventType
    old: T | None
    new: T | None

    @property
    def objects(self) -> tuple[T, ...]:
        """The old and new versions that are present, old first."""

        return tuple(obj for obj in (self.old, self.new) if obj is not None)


type WatchListener[T] = Callable[[WatchEvent[T]], None]
