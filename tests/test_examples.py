"""Test example reconciliation against resolved schemas."""

from overlay_resolver.documents import Document
from overlay_resolver.examples import paired_spec_path, reconcile_example, reconcile_examples

SCHEMAS = {
    "Pizza": {
        "type": "object",
        "properties": {"pizzaName": {"type": "string"}, "toppings": {"type": "array"}},
    },
    "Order": {"type": "object", "properties": {"id": {}}, "additionalProperties": True},
}


def test_paired_spec_path():
    assert paired_spec_path("pizza/pizza-openapi-examples.yaml") == "pizza/pizza-openapi.yaml"
    assert paired_spec_path("pizza-openapi-examples.yml") == "pizza-openapi.yml"
    assert paired_spec_path("pizza-openapi.yaml") is None


def test_reconcile_example_drops_undeclared_keys():
    example = {"pizzaName": "Margherita", "name": "Margherita", "status": "ready"}

    result, dropped = reconcile_example("PizzaExample1", example, SCHEMAS)

    assert result == {"pizzaName": "Margherita"}
    assert dropped == ["name", "status"]


def test_reconcile_example_wrapped_value():
    """Example objects wrapping the record in ``value`` keep their wrapper."""
    example = {"summary": "A pizza", "value": {"pizzaName": "Diavola", "status": "ready"}}

    result, dropped = reconcile_example("PizzaExample", example, SCHEMAS)

    assert result == {"summary": "A pizza", "value": {"pizzaName": "Diavola"}}
    assert dropped == ["status"]


def test_reconcile_example_leaves_unknown_and_open_schemas():
    """Open schemas, unknown schemas and unrelated names are untouched."""
    order = {"id": "1", "extra": True}

    assert reconcile_example("OrderExample1", order, SCHEMAS) == (order, [])
    assert reconcile_example("PastaExample1", {"x": 1}, SCHEMAS) == ({"x": 1}, [])
    assert reconcile_example("metadata", {"x": 1}, SCHEMAS) == ({"x": 1}, [])


def test_reconcile_examples():
    """Example documents are reconciled with their paired spec."""
    spec = {"openapi": "3.1.0", "components": {"schemas": SCHEMAS}}
    examples = {"PizzaExample1": {"pizzaName": "Margherita", "name": "Margherita"}}
    documents = {
        "pizza-openapi.yaml": Document.from_data("pizza-openapi.yaml", spec),
        "pizza-openapi-examples.yaml": Document.from_data("pizza-openapi-examples.yaml", examples),
        "orphan-examples.yaml": Document.from_data("orphan-examples.yaml", examples),
    }

    results, warnings = reconcile_examples(documents)

    assert results["pizza-openapi-examples.yaml"].data == {
        "PizzaExample1": {"pizzaName": "Margherita"}
    }
    assert results["orphan-examples.yaml"] is documents["orphan-examples.yaml"]
    assert results["pizza-openapi.yaml"] is documents["pizza-openapi.yaml"]
    assert warnings == [
        "Dropped name from example PizzaExample1 in pizza-openapi-examples.yaml: "
        "not declared by its schema"
    ]
