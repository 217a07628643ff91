"""Fan-out of target outcome changes to downstream queues."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from rulekeeper.domain.model import ObjectKey

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from rulekeeper.domain.model import Detail
    from rulekeeper.domain.ports import NotificationSink

log = getLogger(__name__)


def changed_targets(old: Mapping[str, Detail], new: Mapping[str, Detail]) -> list[str]:
    """Names whose Detail differs between ``old`` and ``new``, including added/removed."""

    names = set(old) | set(new)
    return sorted(name for name in names if old.get(name) != new.get(name))


@dataclass(slots=True)
class ChangeNotifier:
    sinks: Sequence[NotificationSink] = field(default_factory=tuple)

    def notify(
        self,
        namespace: str,
        old: Mapping[str, Detail],
        new: Mapping[str, Detail],
    ) -> list[str]:
        if not self.sinks:
            return []
        changed = changed_targets(old, new)
        for name in changed:
            self._publish(ObjectKey(namespace, name))
        return changed

    def _publish(self, key: ObjectKey) -> None:
        for sink in self.sinks:
            if sink.shutting_down():
                continue
            try:
                sink.add(key)
            except Exception:
                log.exception("Notification sink %r rejected %s", sink, key)
