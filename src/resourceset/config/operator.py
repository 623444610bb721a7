"""Operator runtime settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import env_duration, env_float, env_int, env_list, env_str
from .errors import ConfigurationError

DEFAULT_FIELD_MANAGER = "flux-operator"


@dataclass(frozen=True, slots=True)
class OperatorConfig:
    field_manager: str = DEFAULT_FIELD_MANAGER
    default_service_account: str = ""
    requeue_dependency: timedelta = timedelta(seconds=5)
    concurrent: int = 4
    resync_period: timedelta = timedelta(seconds=30)
    wait_interval: timedelta = timedelta(seconds=5)
    take_ownership_from: tuple[str, ...] = ()
    interval_jitter: float = 0.0
    watch_namespace: str = ""

    def __post_init__(self) -> None:
        if self.concurrent < 1:
            raise ConfigurationError("RESOURCESET_CONCURRENT must be at least 1")
        if not 0.0 <= self.interval_jitter < 1.0:
            raise ConfigurationError("RESOURCESET_INTERVAL_JITTER must be within [0, 1)")
        if self.resync_period <= timedelta(0):
            raise ConfigurationError("RESOURCESET_RESYNC_PERIOD must be positive")


def get_operator_config() -> OperatorConfig:
    defaults = OperatorConfig()
    return OperatorConfig(
        field_manager=env_str("RESOURCESET_FIELD_MANAGER", defaults.field_manager),
        default_service_account=env_str("RESOURCESET_DEFAULT_SERVICE_ACCOUNT"),
        requeue_dependency=env_duration("RESOURCESET_REQUEUE_DEPENDENCY", defaults.requeue_dependency),
        concurrent=env_int("RESOURCESET_CONCURRENT", defaults.concurrent),
        resync_period=env_duration("RESOURCESET_RESYNC_PERIOD", defaults.resync_period),
        wait_interval=env_duration("RESOURCESET_WAIT_INTERVAL", defaults.wait_interval),
        take_ownership_from=env_list("RESOURCESET_TAKE_OWNERSHIP_FROM"),
        interval_jitter=env_float("RESOURCESET_INTERVAL_JITTER", defaults.interval_jitter),
        watch_namespace=env_str("RESOURCESET_WATCH_NAMESPACE"),
    )
