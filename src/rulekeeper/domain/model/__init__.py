"""Domain objects handled by the reconcile core."""

from __future__ import annotations

from .keys import ObjectKey
from .ruleset import Detail, RejectInfo, RuleSet, RuleSetStatus, RuleState
from .selector import LabelSelector, LabelSelectorRequirement, SelectorOperator
from .target import Target

__all__ = [
    "Detail",
    "LabelSelector",
    "LabelSelectorRequirement",
    "ObjectKey",
    "RejectInfo",
    "RuleSet",
    "RuleSetStatus",
    "RuleState",
    "SelectorOperator",
    "Target",
]
