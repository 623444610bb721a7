"""Shared logging helpers for the operator."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "RESOURCESET_LOG_LEVEL"


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: we default
    to INFO level and a terse format suitable for CLI output. Pass ``force=True`` to
    reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )


def level_from_environment(default: int = logging.INFO) -> int:
    """Resolve ``RESOURCESET_LOG_LEVEL`` (a name such as ``debug`` or a number)."""

    value = os.getenv(LOG_LEVEL_ENV, "").strip()
    if not value:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelNamesMapping().get(value.upper())
    if level is None:
        raise ValueError(f"Unknown log level '{value}' in {LOG_LEVEL_ENV}")
    return level
