"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .kubernetes import KubernetesConfig, get_kubernetes_config
from .logging import configure_logging, level_from_environment
from .operator import OperatorConfig, get_operator_config
from .storage import StorageConfig, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "KubernetesConfig",
    "MissingConfigurationError",
    "OperatorConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_kubernetes_config",
    "get_operator_config",
    "get_storage_config",
    "level_from_environment",
    "require_env_vars",
]
