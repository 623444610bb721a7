"""Input provider objects consumed by the input resolver."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from .resourceset import API_VERSION, INPUT_PROVIDER_KIND


@dataclass(slots=True, kw_only=True)
class ResourceSetInputProvider:
    """Provider whose inputs were exported into its status by another controller."""

    name: str
    namespace: str
    uid: str = ""
    labels: dict[str, str] = field(default_factory=dict["str", "str"])
    exported_inputs: list[dict[str, Any]] = field(default_factory=list["dict[str, Any]"])
    api_version: str = API_VERSION
    kind: str = INPUT_PROVIDER_KIND

    def get_inputs(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(item) for item in self.exported_inputs]
