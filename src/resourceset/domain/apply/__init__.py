"""Staged server-side apply with inventory-diff garbage collection."""

from __future__ import annotations

from .changeset import Action, ChangeSet, ChangeSetEntry, has_changed
from .engine import (
    ApplyEngine,
    ApplyOutcome,
    ApplySettings,
    aggregate_not_ready_status,
    objects_digest,
    take_ownership_from,
)
from .manager import (
    ApplyCleanupOptions,
    ApplyOptions,
    DeleteOptions,
    FieldManager,
    ManagedFieldsOperation,
    ResourceManager,
    WaitOptions,
)

__all__ = [
    "Action",
    "ApplyCleanupOptions",
    "ApplyEngine",
    "ApplyOptions",
    "ApplyOutcome",
    "ApplySettings",
    "ChangeSet",
    "ChangeSetEntry",
    "DeleteOptions",
    "FieldManager",
    "ManagedFieldsOperation",
    "ResourceManager",
    "WaitOptions",
    "aggregate_not_ready_status",
    "has_changed",
    "objects_digest",
    "take_ownership_from",
]
