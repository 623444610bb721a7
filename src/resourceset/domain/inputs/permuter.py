"""Cartesian product of the inputs exported by several providers."""

from __future__ import annotations

import copy
import itertools
from typing import TYPE_CHECKING, Any

from resourceset.domain.errors import ConfigurationError, PermutationLimitError

from .ids import ID_KEY, input_id, normalize_key

if TYPE_CHECKING:
    from collections.abc import Sequence

MAX_PERMUTATIONS = 10000


class Permuter:
    """Accumulates providers and yields ``L_1 x L_2 x ... x L_n``.

    Each provider's records are scoped under its normalized name, so a
    permutation looks like ``{"tenants": {...}, "clusters": {...}, "id": "..."}``.
    Providers without records are skipped.
    """

    def __init__(self, *, max_permutations: int = MAX_PERMUTATIONS) -> None:
        self.max_permutations = max_permutations
        self._names: list[str] = []
        self._inputs: list[list[dict[str, Any]]] = []
        self._expected = 0
        self._result: list[dict[str, Any]] | None = None

    def add_provider(self, provider_name: str, records: Sequence[dict[str, Any]]) -> None:
        if self._result is not None:
            raise RuntimeError("permutations have already been generated, cannot add more inputs")
        if not records:
            return

        expected = len(records) if not self._inputs else self._expected * len(records)
        if expected > self.max_permutations:
            raise PermutationLimitError(expected, self.max_permutations)

        name = normalize_key(provider_name)
        if not name:
            raise ConfigurationError(f"normalized provider name is empty: '{provider_name}'")

        self._expected = expected
        self._names.append(name)
        self._inputs.append(list(records))

    def combine(self) -> list[dict[str, Any]]:
        if self._result is None:
            self._result = self._compute()
        return self._result

    def _compute(self) -> list[dict[str, Any]]:
        if not self._inputs:
            return []
        permutations: list[dict[str, Any]] = []
        indices = [range(len(records)) for records in self._inputs]
        for selection in itertools.product(*indices):
            permutation: dict[str, Any] = {}
            components: list[str] = []
            for name, records, index in zip(self._names, self._inputs, selection, strict=True):
                permutation[name] = copy.deepcopy(records[index])
                components.append(f"{name}={index}")
            permutation[ID_KEY] = input_id("/".join(components))
            permutations.append(permutation)
        return permutations
