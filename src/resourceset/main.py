#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path
from signal import SIGINT, SIGTERM, signal
from typing import TYPE_CHECKING, Any

import yaml
from dotenv import load_dotenv

from resourceset import __version__
from resourceset.app import build_resource_set, run_operator
from resourceset.config import ConfigurationError, configure_logging, level_from_environment
from resourceset.domain.errors import ReconcileError
from resourceset.domain.model.objects import kind_of
from resourceset.domain.model.resourceset import INPUT_PROVIDER_KIND

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from resourceset.domain.model.objects import Unstructured


_stop = threading.Event()


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="resourceset", description="Reconcile ResourceSet objects"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Render a ResourceSet manifest to Kubernetes objects")
    build.add_argument("filename", help="Path to the ResourceSet YAML manifest ('-' reads stdin)")
    build.add_argument(
        "-i",
        "--inputs-from",
        help="Path to a YAML list of inputs replacing the inline inputs",
    )
    build.add_argument(
        "--inputs-from-provider",
        action="append",
        default=[],
        help="Path to ResourceSetInputProvider manifests (repeatable)",
    )
    build.add_argument(
        "-n",
        "--namespace",
        default="",
        help="Namespace used when the manifest does not set one",
    )

    commands.add_parser("run", help="Run the controller against the configured cluster")
    return parser.parse_args(list(argv))


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    file = Path(path)
    if not file.is_file():
        raise ValueError(f"invalid filename '{path}', must point to an existing file")
    return file.read_text(encoding="utf-8")


def _load_manifest(path: str) -> Unstructured:
    try:
        data = yaml.safe_load(_read_text(path))
    except yaml.YAMLError as exc:
        raise ValueError(f"error parsing ResourceSet: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("error parsing ResourceSet: expected a YAML mapping")
    return data


def _load_inputs(path: str) -> list[dict[str, Any]]:
    try:
        data = yaml.safe_load(_read_text(path))
    except yaml.YAMLError as exc:
        raise ValueError(f"error parsing inputs file: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("error parsing inputs file: expected a YAML list of mappings")
    return data


def _load_providers(paths: Sequence[str]) -> list[Unstructured]:
    providers: list[Unstructured] = []
    for path in paths:
        try:
            documents = list(yaml.safe_load_all(_read_text(path)))
        except yaml.YAMLError as exc:
            raise ValueError(f"error loading providers from file: {exc}") from exc
        providers.extend(
            doc for doc in documents if isinstance(doc, dict) and kind_of(doc) == INPUT_PROVIDER_KIND
        )
    return providers


def _build(args: argparse.Namespace) -> None:
    manifest = _load_manifest(args.filename)
    inputs = _load_inputs(args.inputs_from) if args.inputs_from else None
    providers = _load_providers(args.inputs_from_provider)
    objects = build_resource_set(
        manifest, inputs=inputs, providers=providers, namespace=args.namespace
    )
    for obj in objects:
        print("---")
        print(yaml.safe_dump(obj, sort_keys=False, default_flow_style=False), end="")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(argv if argv is not None else sys.argv[1:])
        configure_logging(level=level_from_environment())
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        if parsed_args.command == "build":
            _build(parsed_args)
        else:
            run_operator(_stop)
    except (ValueError, ConfigurationError, ReconcileError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:  # noqa: BLE001
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Stop the controller gracefully on SIGINT/SIGTERM."""
    print("\nShutting down")
    _stop.set()


def cli() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    signal(SIGTERM, sigint_handler)
    main()


if __name__ == "__main__":
    cli()
