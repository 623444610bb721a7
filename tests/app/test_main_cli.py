from __future__ import annotations

import threading
from pathlib import Path  # noqa: TC003

import pytest
import yaml

from resourceset import main as main_module
from resourceset.domain.errors import TerminalError
from tests.support.resourcesets import TENANTS_TEMPLATE, input_provider, resource_set_manifest


def _write(path: Path, *documents: object) -> str:
    path.write_text(yaml.safe_dump_all(documents, sort_keys=False), encoding="utf-8")
    return str(path)


def test_build_prints_objects(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    manifest = _write(tmp_path / "rset.yaml", resource_set_manifest(template=TENANTS_TEMPLATE, inputs=[{"tenant": "team1"}]))

    main_module.main(["build", manifest])

    objects = [doc for doc in yaml.safe_load_all(capsys.readouterr().out) if doc]
    assert [(obj["kind"], obj["metadata"]["name"]) for obj in objects] == [
        ("ConfigMap", "team1-config"),
        ("ServiceAccount", "team1"),
    ]


def test_build_with_inputs_and_provider_files(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    manifest = resource_set_manifest(
        template=TENANTS_TEMPLATE,
        inputs_from=[{"kind": "ResourceSetInputProvider", "selector": {"matchLabels": {"role": "tenants"}}}],
    )
    path = _write(tmp_path / "rset.yaml", manifest)
    providers = _write(
        tmp_path / "providers.yaml",
        input_provider("tenants", inputs=[{"tenant": "team2"}], labels={"role": "tenants"}),
        {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "ignored"}},
    )

    main_module.main(["build", path, "--inputs-from-provider", providers])

    names = [doc["metadata"]["name"] for doc in yaml.safe_load_all(capsys.readouterr().out) if doc]
    assert names == ["team2-config", "team2"]

    inputs = tmp_path / "inputs.yaml"
    inputs.write_text(yaml.safe_dump([{"tenant": "team3"}]), encoding="utf-8")
    main_module.main(["build", path, "-i", str(inputs)])

    names = [doc["metadata"]["name"] for doc in yaml.safe_load_all(capsys.readouterr().out) if doc]
    assert names == ["team3-config", "team3"]


def test_build_missing_file_exits_with_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["build", str(tmp_path / "absent.yaml")])

    assert excinfo.value.code == 2
    assert "must point to an existing file" in capsys.readouterr().err


def test_build_invalid_inputs_file(tmp_path: Path) -> None:
    manifest = _write(tmp_path / "rset.yaml", resource_set_manifest(template=TENANTS_TEMPLATE))
    inputs = tmp_path / "inputs.yaml"
    inputs.write_text("tenant: team1\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["build", manifest, "--inputs-from", str(inputs)])

    assert excinfo.value.code == 2


def test_run_starts_the_operator(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_run(stop: threading.Event) -> None:
        captured["stop"] = stop

    monkeypatch.setattr(main_module, "run_operator", fake_run)

    main_module.main(["run"])

    assert isinstance(captured["stop"], threading.Event)


def test_run_maps_failures_to_exit_codes(monkeypatch: pytest.MonkeyPatch) -> None:
    def terminal(_stop: threading.Event) -> None:
        raise TerminalError(ValueError("bad config"))

    def crash(_stop: threading.Event) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(main_module, "run_operator", terminal)
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["run"])
    assert excinfo.value.code == 2

    monkeypatch.setattr(main_module, "run_operator", crash)
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["run"])
    assert excinfo.value.code == 1


def test_missing_command_is_a_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main_module.main([])

    assert excinfo.value.code == 2


def test_sigint_handler_sets_stop_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    stop = threading.Event()
    monkeypatch.setattr(main_module, "_stop", stop)

    main_module.sigint_handler(2, None)

    assert stop.is_set()
