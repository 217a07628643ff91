"""Targets (pods) selected by RuleSets."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .keys import ObjectKey

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(slots=True)
class Target:
    namespace: str
    name: str
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    resource_version: str = ""
    deletion_timestamp: datetime | None = None

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @property
    def is_running(self) -> bool:
        return self.deletion_timestamp is None

    def owners(self, annotation: str) -> list[str]:
        """Names of the RuleSets recorded in the ownership annotation."""

        raw = self.annotations.get(annotation)
        if not raw:
            return []
        try:
            names = json.loads(raw)
        except json.JSONDecodeError:
            return []
        if not isinstance(names, list):
            return []
        return [name for name in names if isinstance(name, str)]

    def set_owners(self, annotation: str, names: list[str]) -> None:
        if names:
            self.annotations[annotation] = json.dumps(sorted(set(names)))
        else:
            self.annotations.pop(annotation, None)
