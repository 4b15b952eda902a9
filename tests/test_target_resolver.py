"""Test matching overlay actions to documents."""

import pytest
import yaml

from overlay_resolver.openapi_overlays.models import Overlay
from overlay_resolver.openapi_overlays.target_resolver import (
    analyze_target_locations,
    resolve_overlay_targets,
)


def _overlay(*actions):
    return Overlay.from_dict(
        {"overlay": "1.0.0", "info": {"title": "Test"}, "actions": list(actions)}
    )


def _schema_doc(api_id=None):
    info = {"title": "API", "version": "1.0.0"}
    if api_id:
        info["x-api-id"] = api_id
    return {"info": info, "components": {"schemas": {"Pizza": {"type": "object"}}}}


@pytest.fixture
def documents(make_document):
    """Two documents sharing a schema and one without it."""
    return [
        make_document("pizza.yaml", _schema_doc("pizza-api")),
        make_document("pizza-v2.yaml", _schema_doc("pizza-api")),
        make_document("orders.yaml", {"info": {"x-api-id": "orders-api"}, "paths": {}}),
    ]


def test_analyze_target_locations(documents):
    """Every document holding the full target path is recorded."""
    overlay = _overlay({"target": "$.components.schemas.Pizza", "remove": True})

    matches = analyze_target_locations(overlay, documents)

    files = matches[0].matching_files
    assert [f.relative_path for f in files] == ["pizza.yaml", "pizza-v2.yaml"]
    assert [f.version for f in files] == [1, 2]
    assert files[0].api_id == "pizza-api"
    assert matches[0].error is None


def test_single_match(documents):
    """A target present in one document resolves to that document."""
    overlay = _overlay({"target": "$.paths", "update": {"/orders": {}}})

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: ["orders.yaml"]}
    assert warnings == []


def test_zero_matches(documents):
    """A target present nowhere is reported and applied nowhere."""
    overlay = _overlay(
        {
            "target": "$.components.schemas.Pasta",
            "description": "Drop pasta",
            "remove": True,
        }
    )

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: []}
    assert warnings == [
        'Target $.components.schemas.Pasta does not exist in any file (action: "Drop pasta")'
    ]


def test_ambiguous_match(documents):
    """Several matches without a disambiguator are never applied."""
    overlay = _overlay({"target": "$.components.schemas.Pizza", "remove": True})

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: []}
    assert len(warnings) == 1
    assert "exists in multiple files (pizza.yaml, pizza-v2.yaml)" in warnings[0]


def test_target_version_disambiguates(documents):
    """target-version narrows matches by the filename version."""
    overlay = _overlay(
        {"target": "$.components.schemas.Pizza", "target-version": 2, "remove": True}
    )

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: ["pizza-v2.yaml"]}
    assert warnings == []


def test_target_api_disambiguates(make_document):
    """target-api selects the document with the matching info.x-api-id."""
    documents = [
        make_document("a.yaml", _schema_doc("pizza-api")),
        make_document("b.yaml", _schema_doc("pasta-api")),
        make_document("c.yaml", _schema_doc()),
    ]
    overlay = _overlay(
        {"target": "$.components.schemas.Pizza", "target-api": "pasta-api", "remove": True}
    )

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: ["b.yaml"]}
    assert warnings == []


def test_filters_exclude_every_match(documents):
    """Filters that leave nothing produce a dedicated warning."""
    overlay = _overlay(
        {"target": "$.components.schemas.Pizza", "target-api": "orders-api", "remove": True}
    )

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: []}
    assert "matched 2 file(s) but none passed target-api/target-version filters" in warnings[0]


def test_explicit_files_partial_success(documents):
    """Named files that hold the target are used; the others are reported."""
    overlay = _overlay(
        {
            "target": "$.components.schemas.Pizza",
            "files": ["pizza.yaml", "orders.yaml"],
            "remove": True,
        }
    )

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: ["pizza.yaml"]}
    assert len(warnings) == 1
    assert "does not exist in specified file(s): orders.yaml" in warnings[0]


def test_explicit_file_wins_over_ambiguity(documents):
    """A single ``file`` is enough to disambiguate."""
    overlay = _overlay(
        {"target": "$.components.schemas.Pizza", "file": "pizza.yaml", "remove": True}
    )

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: ["pizza.yaml"]}
    assert warnings == []


def test_invalid_and_missing_targets(documents):
    """Unsupported syntax and missing targets skip the action with a warning."""
    overlay = _overlay(
        {"target": "$.paths.*", "remove": True},
        {"description": "No target", "remove": True},
    )

    targets, warnings = resolve_overlay_targets(overlay, documents)

    assert targets == {0: [], 1: []}
    assert warnings[0].startswith("Skipping action: Invalid target '$.paths.*'")
    assert warnings[1] == 'Skipping action: action has no target (action: "No target")'


def test_numeric_yaml_keys_match(make_document):
    """A status code key loaded from YAML as an integer still matches."""
    pets = yaml.safe_load(
        """
paths:
  /pets:
    get:
      responses:
        200:
          description: OK
"""
    )
    overlay = _overlay(
        {"target": "$.paths['/pets'].get.responses.200.description", "update": "Pets"}
    )

    targets, warnings = resolve_overlay_targets(overlay, [make_document("pets.yaml", pets)])

    assert targets == {0: ["pets.yaml"]}
    assert warnings == []
