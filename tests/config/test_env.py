from __future__ import annotations

from datetime import timedelta

import pytest

from resourceset.config import ConfigurationError, MissingConfigurationError, require_env_vars
from resourceset.config.env import env_bool, env_duration, env_float, env_int, env_list, env_str


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert str(exc.value) == "Missing configuration for: MISSING_A, MISSING_B"


def test_env_str_strips_and_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value ")
    monkeypatch.delenv("ABSENT_VAR", raising=False)

    assert env_str("EXAMPLE_VAR") == "value"
    assert env_str("ABSENT_VAR", "fallback") == "fallback"


def test_env_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_INT", "7")
    monkeypatch.setenv("EXAMPLE_FLOAT", "0.25")
    monkeypatch.delenv("ABSENT_VAR", raising=False)

    assert env_int("EXAMPLE_INT", 1) == 7
    assert env_int("ABSENT_VAR", 1) == 1
    assert env_float("EXAMPLE_FLOAT", 0.0) == 0.25

    monkeypatch.setenv("EXAMPLE_INT", "seven")
    with pytest.raises(ConfigurationError, match="EXAMPLE_INT must be an integer"):
        env_int("EXAMPLE_INT", 1)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("true", True), ("YES", True), ("1", True), ("off", False), ("0", False)],
)
def test_env_bool(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:  # noqa: FBT001
    monkeypatch.setenv("EXAMPLE_BOOL", raw)

    assert env_bool("EXAMPLE_BOOL") is expected


def test_env_bool_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_BOOL", "maybe")

    with pytest.raises(ConfigurationError, match="must be a boolean"):
        env_bool("EXAMPLE_BOOL")


def test_env_duration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_DURATION", "1m30s")

    assert env_duration("EXAMPLE_DURATION", timedelta(0)) == timedelta(seconds=90)

    monkeypatch.setenv("EXAMPLE_DURATION", "90")
    with pytest.raises(ConfigurationError, match="must be a duration"):
        env_duration("EXAMPLE_DURATION", timedelta(0))


def test_env_list(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_LIST", "kubectl, helm,,")

    assert env_list("EXAMPLE_LIST") == ("kubectl", "helm")
