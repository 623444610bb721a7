from __future__ import annotations

from datetime import timedelta

import pytest

from resourceset.domain.model.durations import format_duration, parse_duration, round_duration


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("0", timedelta(0)),
        ("5m", timedelta(minutes=5)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5s", timedelta(seconds=1.5)),
        ("250ms", timedelta(milliseconds=250)),
        ("-2s", timedelta(seconds=-2)),
    ],
)
def test_parse_duration(text: str, expected: timedelta) -> None:
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "5", "m5", "5 minutes", "1h-5m"])
def test_parse_duration_rejects_invalid_values(text: str) -> None:
    with pytest.raises(ValueError):
        parse_duration(text)


def test_format_duration_matches_kubernetes_style() -> None:
    assert format_duration(timedelta(0)) == "0s"
    assert format_duration(timedelta(milliseconds=250)) == "250ms"
    assert format_duration(timedelta(seconds=65)) == "1m5s"
    assert format_duration(timedelta(hours=1)) == "1h0m0s"
    assert format_duration(timedelta(seconds=1.5)) == "1.5s"


def test_round_duration() -> None:
    assert round_duration(timedelta(microseconds=1600)) == timedelta(milliseconds=2)
    assert round_duration(timedelta(seconds=2.4)) == timedelta(seconds=2)
