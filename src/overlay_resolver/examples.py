"""Keeping example files in step with their resolved schemas.

An API ``foo-openapi.yaml`` keeps its example records in
``foo-openapi-examples.yaml``, one top-level entry per record, named after
the schema it illustrates (``PizzaExample1``, ``PizzaExample2``...). Once
overlays have removed or renamed schema properties, those records can carry
keys the schema no longer declares. Reconciliation drops such keys.
"""

import logging
import posixpath
import re
from typing import Any, Dict, List, Optional, Tuple

from .bundler import is_examples_document
from .documents import Document

logger = logging.getLogger(__name__)

_EXAMPLE_NAME = re.compile(r"^(?P<schema>[A-Za-z0-9_.]+?)Example\d*$")


def paired_spec_path(examples_path: str) -> Optional[str]:
    """``dir/foo-openapi-examples.yaml`` -> ``dir/foo-openapi.yaml``."""
    directory, name = posixpath.split(examples_path)
    stem, ext = posixpath.splitext(name)
    if not stem.endswith("-examples"):
        return None
    return posixpath.join(directory, stem[: -len("-examples")] + ext)


def _declared_properties(schema: Any) -> Optional[List[str]]:
    """Property names of a closed object schema, or None if it is open."""
    if not isinstance(schema, dict):
        return None
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return None
    if schema.get("additionalProperties"):
        return None
    return list(properties)


def reconcile_example(
    name: str, example: Any, schemas: Dict[str, Any]
) -> Tuple[Any, List[str]]:
    """Drop keys of one example record that its schema no longer declares."""
    match = _EXAMPLE_NAME.match(name)
    if not match or not isinstance(example, dict):
        return example, []

    declared = _declared_properties(schemas.get(match.group("schema")))
    if declared is None:
        return example, []

    # OpenAPI example objects wrap the record in ``value``
    wrapped = isinstance(example.get("value"), dict) and "value" not in declared
    record = example["value"] if wrapped else example

    dropped = [key for key in record if key not in declared]
    if not dropped:
        return example, []

    cleaned = {key: value for key, value in record.items() if key in declared}
    result = {**example, "value": cleaned} if wrapped else cleaned
    return result, dropped


def reconcile_examples(
    documents: Dict[str, Document],
) -> Tuple[Dict[str, Document], List[str]]:
    """Reconcile every examples document with its paired API spec.

    Returns:
        Tuple of (new snapshots keyed by relative path, warnings)
    """
    results = dict(documents)
    warnings: List[str] = []

    for relative_path, document in documents.items():
        if not is_examples_document(relative_path) or not isinstance(document.data, dict):
            continue

        spec_path = paired_spec_path(relative_path)
        spec_document = documents.get(spec_path) if spec_path else None
        if spec_document is None or not isinstance(spec_document.data, dict):
            logger.debug(f"No paired spec for {relative_path}, skipping reconciliation")
            continue

        components = spec_document.data.get("components")
        schemas = components.get("schemas") if isinstance(components, dict) else None
        if not isinstance(schemas, dict):
            continue

        reconciled: Dict[str, Any] = {}
        for name, example in document.data.items():
            reconciled[name], dropped = reconcile_example(str(name), example, schemas)
            for key in dropped:
                warnings.append(
                    f"Dropped {key} from example {name} in {relative_path}: "
                    f"not declared by its schema"
                )

        results[relative_path] = document.with_data(reconciled)

    return results, warnings
