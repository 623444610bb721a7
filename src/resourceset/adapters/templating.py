"""Jinja-based ``ResourceBuilder``.

Templates use ``<< expr >>`` for expressions and ``<% stmt %>`` for statements
so that the YAML payloads, which often carry ``{{ }}`` of their own (Helm
values, GitHub expressions), pass through untouched. The current input record is
available as ``inputs``.
"""

from __future__ import annotations

import copy
import re
import unicodedata
from logging import getLogger
from typing import TYPE_CHECKING, Any

import yaml
from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment

from resourceset.domain.errors import BuildError
from resourceset.domain.model.objects import (
    annotations_of,
    api_version_of,
    kind_of,
    name_of,
    namespace_of,
)
from resourceset.domain.model.resourceset import DISABLED_VALUE, RECONCILE_ANNOTATION

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from jinja2 import Template

    from resourceset.domain.model.objects import Unstructured

log = getLogger(__name__)

# Kubernetes label values are limited to 63 characters.
SLUG_MAX_LENGTH = 63

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def slugify(value: object, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase ASCII slug, truncated on a word boundary when possible."""

    text = unicodedata.normalize("NFKD", str(value)).encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_INVALID.sub("-", text.lower()).strip("-")
    if len(slug) <= max_length:
        return slug
    truncated = slug[:max_length]
    if slug[max_length] != "-" and "-" in truncated:
        truncated = truncated.rsplit("-", 1)[0]
    return truncated.strip("-")


def to_yaml(value: object) -> str:
    """Encode ``value`` as block YAML without a trailing newline."""

    try:
        return yaml.safe_dump(value, default_flow_style=False, sort_keys=True).rstrip("\n")
    except yaml.YAMLError:
        return ""


def _quote(value: object) -> str:
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def build_environment() -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        variable_start_string="<<",
        variable_end_string=">>",
        block_start_string="<%",
        block_end_string="%>",
        comment_start_string="<#",
        comment_end_string="#>",
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["slugify"] = slugify
    env.filters["toYaml"] = to_yaml
    env.filters["quote"] = _quote
    return env


class JinjaResourceBuilder:
    """Renders ``resources`` and ``resourcesTemplate`` once per input record."""

    def __init__(self, env: SandboxedEnvironment | None = None) -> None:
        self._env = env or build_environment()

    def build(
        self,
        template: str,
        resources: Sequence[Unstructured],
        inputs: Sequence[Mapping[str, Any]],
    ) -> list[Unstructured]:
        records: list[Mapping[str, Any]] = list(inputs) or [{}]

        objects: list[Unstructured] = []
        seen: set[tuple[str, str, str, str]] = set()

        for index, resource in enumerate(resources):
            compiled = self._compile(_dump(resource), f"resources[{index}]")
            for record in records:
                for obj in self._render(compiled, record, f"resources[{index}]"):
                    self._collect(obj, objects, seen)

        if template.strip():
            compiled = self._compile(template, "resourcesTemplate")
            for record in records:
                for obj in self._render(compiled, record, "resourcesTemplate"):
                    self._collect(obj, objects, seen)

        log.debug("Built %d objects from %d inputs", len(objects), len(inputs))
        return objects

    def _compile(self, source: str, origin: str) -> Template:
        try:
            return self._env.from_string(source)
        except TemplateError as exc:
            raise BuildError(f"failed to parse {origin}: {exc}") from exc

    def _render(
        self, compiled: Template, record: Mapping[str, Any], origin: str
    ) -> list[Unstructured]:
        try:
            rendered = compiled.render(inputs=copy.deepcopy(dict(record)))
        except TemplateError as exc:
            raise BuildError(f"failed to execute {origin}: {exc}") from exc

        try:
            documents = list(yaml.safe_load_all(rendered))
        except yaml.YAMLError as exc:
            raise BuildError(f"failed to read objects from {origin}: {exc}") from exc

        objects: list[Unstructured] = []
        for document in documents:
            if document is None:
                continue
            if not isinstance(document, dict) or not document.get("kind") or not document.get("apiVersion"):
                raise BuildError(f"{origin} rendered an invalid object: {document!r}")
            objects.append(document)
        return objects

    def _collect(
        self,
        obj: Unstructured,
        objects: list[Unstructured],
        seen: set[tuple[str, str, str, str]],
    ) -> None:
        if annotations_of(obj).get(RECONCILE_ANNOTATION) == DISABLED_VALUE:
            return
        identity = (api_version_of(obj), kind_of(obj), namespace_of(obj), name_of(obj))
        if identity in seen:
            return
        seen.add(identity)
        objects.append(obj)


def _dump(resource: Unstructured) -> str:
    # Folded lines would split template expressions.
    return yaml.safe_dump(resource, default_flow_style=False, sort_keys=False, width=1 << 20)
