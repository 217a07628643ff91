"""Label selectors used by RuleSets to pick their targets."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


class SelectorOperator(StrEnum):
    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"


@dataclass(frozen=True, slots=True)
class LabelSelectorRequirement:
    key: str
    operator: SelectorOperator
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        needs_values = self.operator in (SelectorOperator.IN, SelectorOperator.NOT_IN)
        if needs_values and not self.values:
            raise ValueError(f"Operator {self.operator} on {self.key!r} requires values")
        if not needs_values and self.values:
            raise ValueError(f"Operator {self.operator} on {self.key!r} takes no values")

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator is SelectorOperator.IN:
            return labels.get(self.key) in self.values
        if self.operator is SelectorOperator.NOT_IN:
            return self.key not in labels or labels[self.key] not in self.values
        if self.operator is SelectorOperator.EXISTS:
            return self.key in labels
        return self.key not in labels

    def render(self) -> str:
        values = ",".join(sorted(self.values))
        if self.operator is SelectorOperator.IN:
            return f"{self.key} in ({values})"
        if self.operator is SelectorOperator.NOT_IN:
            return f"{self.key} notin ({values})"
        if self.operator is SelectorOperator.EXISTS:
            return self.key
        return f"!{self.key}"


@dataclass(frozen=True, slots=True)
class LabelSelector:
    """``matchLabels`` plus ``matchExpressions``; all terms are ANDed.

    An empty selector selects every target in the namespace.
    """

    match_labels: Mapping[str, str] = field(default_factory=dict)
    match_expressions: tuple[LabelSelectorRequirement, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.match_labels and not self.match_expressions

    def matches(self, labels: Mapping[str, str]) -> bool:
        for key, value in self.match_labels.items():
            if labels.get(key) != value:
                return False
        return all(requirement.matches(labels) for requirement in self.match_expressions)

    def render(self) -> str:
        """Render the selector in the ``labelSelector`` query-string syntax."""

        terms = [f"{key}={self.match_labels[key]}" for key in sorted(self.match_labels)]
        terms.extend(requirement.render() for requirement in self.match_expressions)
        return ",".join(terms)
