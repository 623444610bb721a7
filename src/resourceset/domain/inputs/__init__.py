"""Input resolution and combination."""

from __future__ import annotations

from .combine import CombinedInput, ProviderKey, combine, flatten, permute, tag_inputs
from .ids import ID_KEY, PROVIDER_KEY, input_id, normalize_key
from .permuter import MAX_PERMUTATIONS, Permuter
from .resolver import InputResolver

__all__ = [
    "ID_KEY",
    "MAX_PERMUTATIONS",
    "PROVIDER_KEY",
    "CombinedInput",
    "InputResolver",
    "Permuter",
    "ProviderKey",
    "combine",
    "flatten",
    "input_id",
    "normalize_key",
    "permute",
    "tag_inputs",
]
