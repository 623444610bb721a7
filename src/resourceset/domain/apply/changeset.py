"""Per-call record of what an apply or delete did to each object."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from resourceset.domain.model.objects import ObjMetadata, fmt_metadata

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from resourceset.domain.model.objects import Unstructured


class Action(StrEnum):
    CREATED = "created"
    CONFIGURED = "configured"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    DELETED = "deleted"
    FAILED = "failed"


def has_changed(action: Action) -> bool:
    return action not in {Action.UNCHANGED, Action.SKIPPED}


@dataclass(frozen=True, slots=True, kw_only=True)
class ChangeSetEntry:
    object_metadata: ObjMetadata
    group_version: str
    action: Action

    @property
    def subject(self) -> str:
        return fmt_metadata(self.object_metadata)

    @classmethod
    def for_object(cls, obj: Unstructured, action: Action) -> ChangeSetEntry:
        return cls(
            object_metadata=ObjMetadata.from_object(obj),
            group_version=str(obj.get("apiVersion") or ""),
            action=action,
        )

    def __str__(self) -> str:
        return f"{self.subject} {self.action}"


@dataclass(slots=True)
class ChangeSet:
    entries: list[ChangeSetEntry] = field(default_factory=list["ChangeSetEntry"])

    def __iter__(self) -> Iterator[ChangeSetEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def add(self, entry: ChangeSetEntry) -> None:
        self.entries.append(entry)

    def extend(self, entries: Iterable[ChangeSetEntry]) -> None:
        self.entries.extend(entries)

    def changed(self) -> ChangeSet:
        """Entries whose action altered the cluster."""

        return ChangeSet([entry for entry in self.entries if has_changed(entry.action)])

    def to_map(self) -> dict[str, str]:
        return {entry.subject: str(entry.action) for entry in self.entries}

    def to_log(self) -> str:
        return "\n".join(str(entry) for entry in self.entries)
