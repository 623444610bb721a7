"""Port for turning templates and inputs into desired objects."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from resourceset.domain.model.objects import Unstructured


@runtime_checkable
class ResourceBuilder(Protocol):
    def build(
        self,
        template: str,
        resources: Sequence[Unstructured],
        inputs: Sequence[Mapping[str, Any]],
    ) -> list[Unstructured]:
        """Render the desired objects.

        Must be deterministic for identical arguments. Raises ``BuildError`` when
        a template cannot be rendered or does not yield valid objects.
        """
        ...
