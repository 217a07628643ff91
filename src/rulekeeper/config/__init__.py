"""Application configuration helpers."""

from __future__ import annotations

from .env import env_float, env_int, optional_env_var, require_env_vars
from .errors import (
    ConfigurationError,
    InvalidConfigurationValueError,
    MissingConfigurationError,
)
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .kube import KubeConfig, get_kube_config
from .reconcile import (
    FINALIZER,
    OWNERSHIP_ANNOTATION,
    TERMINATING_LABEL,
    ReconcileConfig,
    RetryBackoff,
    get_reconcile_config,
)

__all__ = [
    "FINALIZER",
    "OWNERSHIP_ANNOTATION",
    "TERMINATING_LABEL",
    "ConfigurationError",
    "InvalidConfigurationValueError",
    "KubeConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconcileConfig",
    "ResilienceConfig",
    "RetryBackoff",
    "RetryPolicy",
    "env_float",
    "env_int",
    "get_kube_config",
    "get_reconcile_config",
    "optional_env_var",
    "require_env_vars",
]
