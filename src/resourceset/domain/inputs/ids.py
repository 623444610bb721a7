"""Stable identifiers for input records."""

from __future__ import annotations

import re
import zlib

ID_KEY = "id"
PROVIDER_KEY = "provider"

_NON_TEMPLATE_CHARS = re.compile(r"[^a-z0-9_]")


def input_id(value: str) -> str:
    """Deterministic short id: the decimal adler32 checksum of ``value``."""

    return str(zlib.adler32(value.encode("utf-8")))


def normalize_key(value: str) -> str:
    """Make ``value`` usable as a template variable name."""

    return _NON_TEMPLATE_CHARS.sub("_", value.lower())
