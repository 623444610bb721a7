"""Inventory of the objects owned by a ResourceSet.

The inventory is a snapshot recorded in the object status after every apply.
Garbage collection never queries the cluster for owned objects; it diffs the
previous snapshot against the new one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from resourceset.domain.model.objects import ObjMetadata, join_api_version, skeleton, split_api_version

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from resourceset.domain.apply.changeset import ChangeSet
    from resourceset.domain.model.objects import Unstructured


@dataclass(frozen=True, slots=True)
class ResourceRef:
    """Single inventory entry: an object id plus the API version it was applied with."""

    id: str
    version: str

    @property
    def metadata(self) -> ObjMetadata:
        return ObjMetadata.parse(self.id)

    def to_object(self) -> Unstructured:
        """Return a skeleton object addressing the referenced resource."""

        meta = self.metadata
        return skeleton(
            join_api_version(meta.group, self.version), meta.kind, meta.namespace, meta.name
        )


@dataclass(slots=True)
class Inventory:
    entries: list[ResourceRef] = field(default_factory=list["ResourceRef"])

    def __iter__(self) -> Iterator[ResourceRef]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, ResourceRef):
            return any(entry.id == item.id for entry in self.entries)
        if isinstance(item, str):
            return any(entry.id == item for entry in self.entries)
        return False

    def ids(self) -> set[str]:
        return {entry.id for entry in self.entries}

    def copy(self) -> Inventory:
        return Inventory(entries=list(self.entries))

    def add(self, ref: ResourceRef) -> None:
        if ref not in self:
            self.entries.append(ref)

    def sort(self) -> None:
        self.entries.sort(key=lambda entry: entry.id)

    def to_objects(self) -> list[Unstructured]:
        return [entry.to_object() for entry in self.entries]

    def diff(self, target: Inventory) -> list[Unstructured]:
        """Return skeletons of the entries in this inventory that ``target`` lacks."""

        target_ids = target.ids()
        return [entry.to_object() for entry in self.entries if entry.id not in target_ids]

    @classmethod
    def from_objects(cls, objects: Iterable[Unstructured]) -> Inventory:
        inventory = cls()
        for obj in objects:
            meta = ObjMetadata.from_object(obj)
            _, version = split_api_version(str(obj.get("apiVersion") or ""))
            inventory.add(ResourceRef(id=meta.id, version=version))
        inventory.sort()
        return inventory

    @classmethod
    def from_change_set(cls, change_set: ChangeSet) -> Inventory:
        inventory = cls()
        for entry in change_set:
            _, version = split_api_version(entry.group_version)
            inventory.add(ResourceRef(id=entry.object_metadata.id, version=version))
        inventory.sort()
        return inventory


def diff_inventories(old: Inventory | None, new: Inventory) -> list[Unstructured]:
    """Return the objects of ``old`` that are absent from ``new``; the stale set."""

    if old is None:
        return []
    return old.diff(new)
