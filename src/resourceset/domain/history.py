"""Digest-keyed reconciliation history.

Each distinct digest owns exactly one entry. Reconciling the same content again
moves its entry to the front and bumps the counter instead of appending, so a
ResourceSet flapping between two states converges to two entries.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from datetime import datetime, timedelta

MAX_HISTORY_SIZE = 5


@dataclass(slots=True, kw_only=True)
class Snapshot:
    digest: str
    first_reconciled: datetime
    last_reconciled: datetime
    last_reconciled_duration: timedelta
    last_reconciled_status: str
    total_reconciliations: int = 1
    metadata: dict[str, str] = field(default_factory=dict["str", "str"])


class History:
    """Most recently reconciled first, bounded by ``max_size`` distinct digests."""

    def __init__(
        self, entries: list[Snapshot] | None = None, *, max_size: int = MAX_HISTORY_SIZE
    ) -> None:
        self._entries: list[Snapshot] = list(entries or [])
        self.max_size = max_size

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> Snapshot:
        return self._entries[index]

    def as_list(self) -> list[Snapshot]:
        return list(self._entries)

    def latest(self) -> Snapshot | None:
        return self._entries[0] if self._entries else None

    def upsert(
        self,
        digest: str,
        timestamp: datetime,
        duration: timedelta,
        status: str,
        metadata: Mapping[str, str] | None = None,
    ) -> Snapshot:
        for index, entry in enumerate(self._entries):
            if entry.digest != digest:
                continue
            entry.last_reconciled = timestamp
            entry.last_reconciled_duration = duration
            entry.last_reconciled_status = status
            entry.metadata = dict(metadata or {})
            entry.total_reconciliations += 1
            self._entries.insert(0, self._entries.pop(index))
            return entry

        entry = Snapshot(
            digest=digest,
            first_reconciled=timestamp,
            last_reconciled=timestamp,
            last_reconciled_duration=duration,
            last_reconciled_status=status,
            metadata=dict(metadata or {}),
        )
        self._entries.insert(0, entry)
        self._truncate()
        return entry

    def _truncate(self) -> None:
        if len(self._entries) <= self.max_size:
            return
        self._entries.sort(key=lambda entry: entry.last_reconciled, reverse=True)
        del self._entries[self.max_size :]


def digest_of(payload: object) -> str:
    """Return ``sha256:<hex>`` of the canonical JSON encoding of ``payload``."""

    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return "sha256:" + hashlib.sha256(encoded.encode("utf-8")).hexdigest()
