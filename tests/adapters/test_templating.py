from __future__ import annotations

import pytest

from resourceset.adapters.templating import JinjaResourceBuilder, slugify, to_yaml
from resourceset.domain.errors import BuildError
from tests.support.resourcesets import TENANTS_TEMPLATE, config_map


@pytest.fixture
def builder() -> JinjaResourceBuilder:
    return JinjaResourceBuilder()


def test_slugify() -> None:
    assert slugify("Team One / Prod") == "team-one-prod"
    assert slugify("Ça va?") == "ca-va"
    assert slugify("--edge--") == "edge"


def test_slugify_truncates_on_word_boundary() -> None:
    value = "alpha-" * 20

    slug = slugify(value, max_length=20)

    assert slug == "alpha-alpha-alpha"
    assert len(slug) <= 20


def test_to_yaml_is_block_style() -> None:
    assert to_yaml({"b": 1, "a": [1, 2]}) == "a:\n- 1\n- 2\nb: 1"


def test_template_renders_once_per_input(builder: JinjaResourceBuilder) -> None:
    objects = builder.build(TENANTS_TEMPLATE, [], [{"tenant": "team1"}, {"tenant": "team2"}])

    assert [(obj["kind"], obj["metadata"]["name"]) for obj in objects] == [
        ("ConfigMap", "team1-config"),
        ("ServiceAccount", "team1"),
        ("ConfigMap", "team2-config"),
        ("ServiceAccount", "team2"),
    ]


def test_resources_are_templated(builder: JinjaResourceBuilder) -> None:
    resource = config_map("<< inputs.tenant | slugify >>-app", data={"owner": "<< inputs.owner | quote >>"})

    objects = builder.build("", [resource], [{"tenant": "Team One", "owner": 'say "hi"'}])

    assert objects[0]["metadata"]["name"] == "team-one-app"
    assert objects[0]["data"] == {"owner": 'say "hi"'}


def test_without_inputs_renders_once(builder: JinjaResourceBuilder) -> None:
    objects = builder.build("", [config_map("static")], [])

    assert len(objects) == 1
    assert objects[0]["metadata"]["name"] == "static"


def test_duplicate_objects_keep_the_first(builder: JinjaResourceBuilder) -> None:
    first = config_map("shared", data={"from": "resources"})
    template = "apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: shared\n  namespace: default\ndata:\n  from: template\n"

    objects = builder.build(template, [first], [{"a": 1}, {"a": 2}])

    assert len(objects) == 1
    assert objects[0]["data"] == {"from": "resources"}


def test_disabled_objects_are_dropped(builder: JinjaResourceBuilder) -> None:
    disabled = config_map("skipped", annotations={"fluxcd.controlplane.io/reconcile": "disabled"})

    objects = builder.build("", [disabled, config_map("kept")], [])

    assert [obj["metadata"]["name"] for obj in objects] == ["kept"]


def test_statements_and_foreign_braces_pass_through(builder: JinjaResourceBuilder) -> None:
    template = """\
<% for port in inputs.ports %>
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: port-<< port >>
data:
  expr: "${{ github.ref }}"
<% endfor %>
"""
    objects = builder.build(template, [], [{"ports": [80, 443]}])

    assert [obj["metadata"]["name"] for obj in objects] == ["port-80", "port-443"]
    assert objects[0]["data"]["expr"] == "${{ github.ref }}"


def test_undefined_input_is_a_build_error(builder: JinjaResourceBuilder) -> None:
    with pytest.raises(BuildError, match="failed to execute resourcesTemplate"):
        builder.build("name: << inputs.missing >>", [], [{"tenant": "team1"}])


def test_syntax_error_is_a_build_error(builder: JinjaResourceBuilder) -> None:
    with pytest.raises(BuildError, match="failed to parse resourcesTemplate"):
        builder.build("<% for x in %>", [], [])


def test_non_object_document_is_a_build_error(builder: JinjaResourceBuilder) -> None:
    with pytest.raises(BuildError, match="rendered an invalid object"):
        builder.build("- just\n- a list\n", [], [])


def test_invalid_yaml_is_a_build_error(builder: JinjaResourceBuilder) -> None:
    with pytest.raises(BuildError, match="failed to read objects"):
        builder.build("kind: [unclosed\n", [], [])


def test_inputs_are_not_mutated_by_templates(builder: JinjaResourceBuilder) -> None:
    record = {"items": [1]}
    template = "<% set _ = inputs['items'].append(2) %>apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: x\n"

    builder.build(template, [], [record])

    assert record == {"items": [1]}
