"""API server adapter for RuleSets and pods."""

from __future__ import annotations

from .client import (
    KubeAPIError,
    KubeClient,
    KubeRuleSetRepository,
    KubeTargetRepository,
    build_kube_object_store,
)

__all__ = [
    "KubeAPIError",
    "KubeClient",
    "KubeRuleSetRepository",
    "KubeTargetRepository",
    "build_kube_object_store",
]
