"""Parsing and formatting of Kubernetes-style duration strings (``1h30m``, ``500ms``)."""

from __future__ import annotations

import re
from datetime import timedelta

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_COMPONENT = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as ``5m``, ``1h30m`` or ``1.5s``.

    Raises ``ValueError`` for anything that is not a sequence of
    ``<number><unit>`` components. A bare ``0`` is accepted.
    """

    text = value.strip()
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError("empty duration")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    position = 0
    total = 0.0
    for match in _COMPONENT.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position != len(text) or position == 0:
        raise ValueError(f"invalid duration '{value}'")
    return timedelta(seconds=sign * total)


def format_duration(value: timedelta) -> str:
    """Format a duration the way Kubernetes tooling prints it (``1m5s``, ``250ms``)."""

    total = value.total_seconds()
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    total = abs(total)
    if total < 1:
        millis = total * 1000
        if millis >= 1:
            return f"{sign}{_trim(millis)}ms"
        return f"{sign}{_trim(total * 1e6)}µs"

    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{int(hours)}h")
    if hours or minutes:
        parts.append(f"{int(minutes)}m")
    parts.append(f"{_trim(seconds)}s")
    return sign + "".join(parts)


def round_duration(value: timedelta) -> timedelta:
    """Round to milliseconds below one second and to seconds above."""

    if value < timedelta(seconds=1):
        return timedelta(milliseconds=round(value.total_seconds() * 1000))
    return timedelta(seconds=round(value.total_seconds()))


def _trim(number: float) -> str:
    text = f"{number:.3f}".rstrip("0").rstrip(".")
    return text or "0"
