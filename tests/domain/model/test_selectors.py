from __future__ import annotations

import pytest

from resourceset.domain.model.selectors import (
    InvalidLabelSelectorError,
    LabelSelector,
    SelectorRequirement,
)


def test_selector_combines_labels_and_expressions() -> None:
    selector = LabelSelector(
        match_labels={"app": "web"},
        match_expressions=(
            SelectorRequirement("tier", "In", ("frontend", "edge")),
            SelectorRequirement("legacy", "DoesNotExist"),
        ),
    )

    assert selector.matches({"app": "web", "tier": "edge"})
    assert not selector.matches({"app": "web", "tier": "backend"})
    assert not selector.matches({"app": "web", "tier": "edge", "legacy": "true"})
    assert not selector.matches({"tier": "edge"})


def test_not_in_matches_missing_keys() -> None:
    requirement = SelectorRequirement("env", "NotIn", ("prod",))

    assert requirement.matches({})
    assert requirement.matches({"env": "dev"})
    assert not requirement.matches({"env": "prod"})


def test_selector_renders_query_syntax() -> None:
    selector = LabelSelector(
        match_labels={"b": "2", "a": "1"},
        match_expressions=(
            SelectorRequirement("env", "NotIn", ("prod", "dev")),
            SelectorRequirement("team", "Exists"),
        ),
    )

    assert str(selector) == "a=1,b=2,env notin (dev,prod),team"


@pytest.mark.parametrize(
    "requirement",
    [
        SelectorRequirement("env", "Matches", ("x",)),
        SelectorRequirement("env", "In"),
        SelectorRequirement("env", "Exists", ("x",)),
        SelectorRequirement("", "Exists"),
    ],
)
def test_invalid_requirements_are_rejected(requirement: SelectorRequirement) -> None:
    with pytest.raises(InvalidLabelSelectorError):
        LabelSelector(match_expressions=(requirement,)).validate()


def test_empty_selector() -> None:
    assert LabelSelector().is_empty()
    assert LabelSelector().matches({"any": "label"})
