"""API server connection settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_RULESET_GROUP = "apps.rulekeeper.io"
DEFAULT_RULESET_VERSION = "v1alpha1"
KUBE_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class KubeConfig:
    """Holds API server coordinates plus the RuleSet resource group."""

    resilience: ResilienceConfig
    ruleset_group: str = DEFAULT_RULESET_GROUP
    ruleset_version: str = DEFAULT_RULESET_VERSION

    @property
    def ruleset_api_prefix(self) -> str:
        return f"/apis/{self.ruleset_group}/{self.ruleset_version}"


def get_kube_config(*, resilience: ResilienceConfig | None = None) -> KubeConfig:
    values = require_env_vars(("KUBE_API_URL", "KUBE_TOKEN"))
    ca_bundle = optional_env_var("KUBE_CA_FILE")
    return KubeConfig(
        resilience=resilience
        or ResilienceConfig(
            name="kube",
            base_url=values["KUBE_API_URL"].rstrip("/"),
            timeout_seconds=KUBE_TIMEOUT_SECONDS,
            retry=RetryPolicy(),
            ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
            default_headers={
                "Authorization": f"Bearer {values['KUBE_TOKEN']}",
                "Accept": "application/json",
            },
            verify=ca_bundle or True,
        ),
        ruleset_group=optional_env_var("KUBE_RULESET_GROUP") or DEFAULT_RULESET_GROUP,
    )
