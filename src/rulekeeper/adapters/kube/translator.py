"""Translate API payloads into domain objects and domain changes into patches."""

from __future__ import annotations

from datetime import UTC
from typing import TYPE_CHECKING, Any

from rulekeeper.domain.model import (
    Detail,
    LabelSelector,
    LabelSelectorRequirement,
    RejectInfo,
    RuleSet,
    RuleSetStatus,
    RuleState,
    SelectorOperator,
    Target,
)

if TYPE_CHECKING:
    from .schema import LabelSelectorPayload, PodPayload, RuleSetPayload, RuleSetStatusPayload


def parse_selector(payload: LabelSelectorPayload) -> LabelSelector:
    return LabelSelector(
        match_labels=dict(payload.match_labels),
        match_expressions=tuple(
            LabelSelectorRequirement(
                key=requirement.key,
                operator=SelectorOperator(requirement.operator),
                values=tuple(requirement.values),
            )
            for requirement in payload.match_expressions
        ),
    )


def parse_status(payload: RuleSetStatusPayload) -> RuleSetStatus:
    return RuleSetStatus(
        targets=list(payload.targets),
        observed_generation=payload.observed_generation,
        details=[
            Detail(
                name=detail.name,
                stage=detail.stage,
                passed_rules=list(detail.passed_rules),
                reject_info=[
                    RejectInfo(rule_name=info.rule_name, reason=info.reason)
                    for info in detail.reject_info
                ],
            )
            for detail in payload.details
        ],
        rule_states=[
            RuleState(name=state.name, webhook_status=state.webhook_status)
            for state in payload.rule_states
        ],
        update_time=payload.update_time,
    )


def parse_ruleset(payload: RuleSetPayload) -> RuleSet:
    meta = payload.metadata
    return RuleSet(
        namespace=meta.namespace,
        name=meta.name,
        selector=parse_selector(payload.spec.selector),
        rules=list(payload.spec.rules),
        labels=dict(meta.labels),
        finalizers=list(meta.finalizers),
        generation=meta.generation,
        resource_version=meta.resource_version,
        deletion_timestamp=meta.deletion_timestamp,
        status=parse_status(payload.status),
    )


def parse_target(payload: PodPayload) -> Target:
    meta = payload.metadata
    return Target(
        namespace=meta.namespace,
        name=meta.name,
        labels=dict(meta.labels),
        annotations=dict(meta.annotations),
        resource_version=meta.resource_version,
        deletion_timestamp=meta.deletion_timestamp,
    )


def status_to_payload(status: RuleSetStatus) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "targets": list(status.targets),
        "observedGeneration": status.observed_generation,
        "details": [
            {
                "name": detail.name,
                "stage": detail.stage,
                "passed": detail.passed,
                "passedRules": list(detail.passed_rules),
                "rejectInfo": [
                    {"ruleName": info.rule_name, "reason": info.reason}
                    for info in detail.reject_info
                ],
            }
            for detail in status.details
        ],
        "ruleStates": [
            {"name": state.name, "webhookStatus": state.webhook_status}
            for state in status.rule_states
        ],
    }
    if status.update_time is not None:
        payload["updateTime"] = status.update_time.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    return payload


def finalizers_patch(ruleset: RuleSet) -> dict[str, Any]:
    return {
        "metadata": {
            "resourceVersion": ruleset.resource_version,
            "finalizers": list(ruleset.finalizers),
        }
    }


def status_patch(ruleset: RuleSet) -> dict[str, Any]:
    return {
        "metadata": {"resourceVersion": ruleset.resource_version},
        "status": status_to_payload(ruleset.status),
    }


def annotation_patch(target: Target, annotation: str) -> dict[str, Any]:
    """Merge patch writing (or removing, via ``null``) one annotation of ``target``."""

    return {
        "metadata": {
            "resourceVersion": target.resource_version,
            "annotations": {annotation: target.annotations.get(annotation)},
        }
    }
