"""Event recorder that reports RuleSet events through logging."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rulekeeper.domain.model import RuleSet
    from rulekeeper.domain.ports import EventType

log = logging.getLogger(__name__)


class LoggingEventRecorder:
    def event(self, ruleset: RuleSet, event_type: EventType, reason: str, message: str) -> None:
        level = logging.WARNING if event_type == "Warning" else logging.INFO
        log.log(level, "RuleSet %s %s: %s", ruleset.key, reason, message)
