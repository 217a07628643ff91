"""Shared fixtures for API server adapter tests."""

from __future__ import annotations

import pytest

from rulekeeper.config.http_resilience import ResilienceConfig
from rulekeeper.config.kube import KubeConfig

BASE_URL = "https://kube.example"


@pytest.fixture
def kube_config() -> KubeConfig:
    return KubeConfig(
        resilience=ResilienceConfig(
            name="kube-test",
            base_url=BASE_URL,
            default_headers={"Authorization": "Bearer token"},
        )
    )
