"""Pydantic models describing the API server payloads the adapter reads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class KubeBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ObjectMetaPayload(KubeBaseModel):
    name: str
    namespace: str = "default"
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    generation: int = 1
    resource_version: str = Field(default="", alias="resourceVersion")
    deletion_timestamp: datetime | None = Field(default=None, alias="deletionTimestamp")


class LabelSelectorRequirementPayload(KubeBaseModel):
    key: str
    operator: str
    values: list[str] = Field(default_factory=list)


class LabelSelectorPayload(KubeBaseModel):
    match_labels: dict[str, str] = Field(default_factory=dict, alias="matchLabels")
    match_expressions: list[LabelSelectorRequirementPayload] = Field(
        default_factory=list, alias="matchExpressions"
    )


class RejectInfoPayload(KubeBaseModel):
    rule_name: str = Field(alias="ruleName")
    reason: str = ""


class DetailPayload(KubeBaseModel):
    name: str
    stage: str = ""
    passed: bool = True
    passed_rules: list[str] = Field(default_factory=list, alias="passedRules")
    reject_info: list[RejectInfoPayload] = Field(default_factory=list, alias="rejectInfo")


class RuleStatePayload(KubeBaseModel):
    name: str
    webhook_status: dict[str, Any] | None = Field(default=None, alias="webhookStatus")


class RuleSetStatusPayload(KubeBaseModel):
    targets: list[str] = Field(default_factory=list)
    observed_generation: int = Field(default=0, alias="observedGeneration")
    details: list[DetailPayload] = Field(default_factory=list)
    rule_states: list[RuleStatePayload] = Field(default_factory=list, alias="ruleStates")
    update_time: datetime | None = Field(default=None, alias="updateTime")


class RuleSetSpecPayload(KubeBaseModel):
    selector: LabelSelectorPayload = Field(default_factory=LabelSelectorPayload)
    rules: list[dict[str, Any]] = Field(default_factory=list)


class RuleSetPayload(KubeBaseModel):
    metadata: ObjectMetaPayload
    spec: RuleSetSpecPayload = Field(default_factory=RuleSetSpecPayload)
    status: RuleSetStatusPayload = Field(default_factory=RuleSetStatusPayload)


class RuleSetListPayload(KubeBaseModel):
    items: list[RuleSetPayload] = Field(default_factory=list)


class PodPayload(KubeBaseModel):
    """Only metadata matters here; pod spec and status are never read or written."""

    metadata: ObjectMetaPayload


class PodListPayload(KubeBaseModel):
    items: list[PodPayload] = Field(default_factory=list)


class StatusPayload(KubeBaseModel):
    """Error body returned by the API server."""

    message: str = ""
    reason: str = ""
    code: int | None = None
