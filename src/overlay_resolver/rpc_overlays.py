"""Generating RPC overlays from state machine contracts.

A state machine contract describes the transitions of one resource (for
example a ``Task`` moving from ``open`` to ``claimed``). Each distinct
transition trigger becomes a ``POST {item path}/{trigger}`` endpoint in the
API document the contract names in ``apiSpec``. The endpoints are emitted as
an ordinary overlay so they go through the same target resolution as
hand-written overlays.
"""

import copy
import logging
import posixpath
import re
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .bundler import json_pointer_get, split_ref
from .documents import Document, DocumentKind
from .openapi_overlays.models import Overlay
from .openapi_overlays.overlay_manager import OverlayManager

logger = logging.getLogger(__name__)

DEFAULT_COMPONENT_PREFIX = "./"
COMPONENTS_MARKER = "components/"
HTTP_METHODS = ("get", "put", "post", "delete", "patch", "head", "options", "trace")

ERROR_RESPONSES = {
    "400": "BadRequest",
    "404": "NotFound",
    "422": "UnprocessableEntity",
    "500": "InternalError",
}


class Transition(BaseModel):
    """One edge of a state machine."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    trigger: str
    from_state: Union[str, List[str], None] = Field(default=None, alias="from")
    to: Optional[str] = None
    guards: List[Any] = Field(default_factory=list)
    effects: List[Any] = Field(default_factory=list)

    @property
    def from_states(self) -> List[str]:
        if self.from_state is None:
            return []
        if isinstance(self.from_state, list):
            return list(self.from_state)
        return [self.from_state]


class StateMachineContract(BaseModel):
    """Behavioral contract describing a resource's lifecycle."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    schema_ref: Optional[str] = Field(default=None, alias="$schema")
    domain: str = ""
    object_name: str = Field(default="", alias="object")
    api_spec: str = Field(alias="apiSpec")
    states: Any = None
    initial_state: Optional[str] = Field(default=None, alias="initialState")
    transitions: List[Transition] = Field(default_factory=list)
    request_bodies: Dict[str, Any] = Field(default_factory=dict, alias="requestBodies")

    @property
    def triggers(self) -> List[str]:
        """Distinct triggers in order of first appearance."""
        seen: List[str] = []
        for transition in self.transitions:
            if transition.trigger not in seen:
                seen.append(transition.trigger)
        return seen

    def transitions_for(self, trigger: str) -> List[Transition]:
        return [t for t in self.transitions if t.trigger == trigger]


class RpcOverlay(NamedTuple):
    """A generated overlay and the contract it came from."""

    overlay: Overlay
    state_machine: StateMachineContract
    source_path: str


def _iter_refs(node: Any):
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str):
                yield value
            else:
                yield from _iter_refs(value)
    elif isinstance(node, list):
        for item in node:
            yield from _iter_refs(item)


def detect_component_prefix(spec: Any) -> str:
    """Detect how a document refers to external component files.

    Looks for the first external ``$ref`` containing ``components/`` and
    returns whatever precedes it, e.g. ``./`` or ``../../contracts/``.
    Internal refs (``#/components/...``) are ignored.
    """
    for ref in _iter_refs(spec):
        if ref.startswith("#"):
            continue
        index = ref.find(COMPONENTS_MARKER)
        if index != -1:
            return ref[:index]
    return DEFAULT_COMPONENT_PREFIX


def _rewrite_refs(node: Any, old: str, new: str) -> Any:
    if isinstance(node, dict):
        result = {}
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str) and value.startswith(old):
                result[key] = new + value[len(old) :]
            else:
                result[key] = _rewrite_refs(value, old, new)
        return result
    if isinstance(node, list):
        return [_rewrite_refs(item, old, new) for item in node]
    return node


def rewrite_overlay_refs(overlay: Any, from_prefix: str, to_prefix: str) -> Any:
    """Rewrite external component ``$ref`` prefixes in an overlay document.

    Returns the overlay unchanged (the same object) when the prefixes match.
    """
    if from_prefix == to_prefix:
        return overlay
    return _rewrite_refs(
        copy.deepcopy(overlay),
        from_prefix + COMPONENTS_MARKER,
        to_prefix + COMPONENTS_MARKER,
    )


def camel_case(value: str) -> str:
    parts = [part for part in re.split(r"[-_\s]+", value) if part]
    if not parts:
        return value
    return parts[0][0].lower() + parts[0][1:] + "".join(p[0].upper() + p[1:] for p in parts[1:])


def _capitalize(value: str) -> str:
    return value[:1].upper() + value[1:]


def _humanize(value: str) -> str:
    return " ".join(part for part in re.split(r"[-_\s]+", value) if part)


def find_template_path(spec: Any) -> Optional[str]:
    """Pick a single-resource path item (one ending in a path parameter)."""
    paths = spec.get("paths") if isinstance(spec, dict) else None
    if not isinstance(paths, dict):
        return None

    candidates = [
        path
        for path, item in paths.items()
        if isinstance(path, str) and "{" in path and isinstance(item, dict)
    ]
    for path in candidates:
        if path.rstrip("/").endswith("}"):
            return path
    return candidates[0] if candidates else None


def _template_operation(path_item: Dict[str, Any]) -> Dict[str, Any]:
    operation = path_item.get("get")
    if isinstance(operation, dict):
        return operation
    for method in HTTP_METHODS:
        if isinstance(path_item.get(method), dict):
            return path_item[method]
    return {}


def path_parameters(spec: Any, *parameter_lists: Any) -> List[Any]:
    """Keep the ``in: path`` entries of the template's parameter lists.

    Internal ``$ref`` entries are followed to decide; refs into other files
    cannot be inspected here and are kept as-is.
    """
    kept: List[Any] = []
    for parameters in parameter_lists:
        if not isinstance(parameters, list):
            continue
        for parameter in parameters:
            if not isinstance(parameter, dict) or parameter in kept:
                continue
            resolved = parameter
            ref = parameter.get("$ref")
            if isinstance(ref, str):
                path_part, fragment = split_ref(ref)
                if path_part:
                    kept.append(parameter)
                    continue
                try:
                    resolved = json_pointer_get(spec, fragment)
                except KeyError:
                    continue
            if isinstance(resolved, dict) and resolved.get("in") == "path":
                kept.append(parameter)
    return kept


def _response_schema(operation: Dict[str, Any]) -> Optional[Any]:
    responses = operation.get("responses") or {}
    ok = responses.get("200") or responses.get(200)
    if not isinstance(ok, dict):
        return None
    content = ok.get("content") or {}
    media = content.get("application/json")
    if not isinstance(media, dict):
        return None
    return media.get("schema")


def _build_operation(
    contract: StateMachineContract,
    trigger: str,
    tags: Optional[List[str]],
    response_schema: Optional[Any],
) -> Dict[str, Any]:
    object_name = contract.object_name or "Resource"
    transitions = contract.transitions_for(trigger)

    from_states: List[str] = []
    for transition in transitions:
        for state in transition.from_states:
            if state not in from_states:
                from_states.append(state)
    to_states = [t.to for t in transitions if t.to]

    description = f"Trigger the {trigger} transition on a {object_name.lower()}."
    if from_states and to_states:
        description += (
            f" Allowed from {', '.join(from_states)}; moves to {to_states[0]}."
        )

    operation: Dict[str, Any] = {
        "summary": f"{_capitalize(_humanize(trigger))} {object_name.lower()}",
        "description": description,
        "operationId": f"{camel_case(trigger)}{_capitalize(object_name)}",
    }
    if tags:
        operation["tags"] = list(tags)

    if trigger in contract.request_bodies:
        body = contract.request_bodies[trigger]
        schema = copy.deepcopy(body) if isinstance(body, dict) and body else {"type": "object"}
        operation["requestBody"] = {
            "required": bool(body),
            "content": {"application/json": {"schema": schema}},
        }

    ok: Dict[str, Any] = {
        "description": f"{_capitalize(object_name)} after the {trigger} transition."
    }
    if response_schema is not None:
        ok["content"] = {"application/json": {"schema": copy.deepcopy(response_schema)}}

    responses: Dict[str, Any] = {"200": ok}
    for status, name in ERROR_RESPONSES.items():
        responses[status] = {
            "$ref": f"{DEFAULT_COMPONENT_PREFIX}{COMPONENTS_MARKER}responses.yaml#/{name}"
        }
    operation["responses"] = responses

    operation["x-state-transitions"] = [
        {"from": t.from_state, "to": t.to} for t in transitions
    ]
    return operation


def generate_rpc_overlay(
    contract: StateMachineContract,
    api_document: Document,
    overlay_manager: Optional[OverlayManager] = None,
) -> Tuple[Optional[Overlay], List[str]]:
    """Build the overlay adding one POST endpoint per transition trigger.

    Args:
        contract: The state machine contract
        api_document: The document named by the contract's ``apiSpec``
        overlay_manager: Used to build the overlay document

    Returns:
        Tuple of (overlay or None when nothing needs adding, warnings)
    """
    overlay_manager = overlay_manager or OverlayManager()
    spec = api_document.data
    label = contract.domain or contract.object_name or api_document.relative_path

    template_path = find_template_path(spec)
    if template_path is None:
        return None, [
            f"No single-resource path found in {api_document.relative_path} to "
            f"template RPC endpoints for {label}"
        ]

    path_item = spec["paths"][template_path]
    operation = _template_operation(path_item)
    tags = operation.get("tags")
    response_schema = _response_schema(operation)
    parameters = path_parameters(
        spec, path_item.get("parameters"), operation.get("parameters")
    )

    new_paths: Dict[str, Any] = {}
    for trigger in contract.triggers:
        rpc_path = f"{template_path.rstrip('/')}/{trigger}"
        if rpc_path in spec["paths"]:
            logger.debug(f"Skipping {rpc_path}: already defined in {api_document.relative_path}")
            continue

        rpc_item: Dict[str, Any] = {}
        if parameters:
            rpc_item["parameters"] = copy.deepcopy(parameters)
        rpc_item["post"] = _build_operation(contract, trigger, tags, response_schema)
        new_paths[rpc_path] = rpc_item

    if not new_paths:
        return None, []

    overlay_doc = overlay_manager.create_overlay(
        title=f"{contract.domain} RPC Overlay",
        description=f"RPC endpoints generated from the {label} state machine",
        actions=[
            {
                "target": "$.paths",
                "file": api_document.relative_path,
                "description": f"Add {label} RPC endpoints",
                "update": new_paths,
            }
        ],
    )

    prefix = detect_component_prefix(spec)
    overlay_doc = rewrite_overlay_refs(overlay_doc, DEFAULT_COMPONENT_PREFIX, prefix)
    return Overlay.from_dict(overlay_doc), []


def find_api_document(
    contract_path: str, api_spec: str, documents: Dict[str, Document]
) -> Optional[Document]:
    """Find the document an ``apiSpec`` reference points at.

    The reference is resolved relative to the contract's directory first,
    then relative to the collection root.
    """
    contract_dir = posixpath.dirname(contract_path)
    candidates = [
        posixpath.normpath(posixpath.join(contract_dir, api_spec)),
        posixpath.normpath(api_spec),
    ]
    for candidate in candidates:
        if candidate in documents:
            return documents[candidate]
    return None


def generate_rpc_overlays(
    documents: Sequence[Document],
    overlay_manager: Optional[OverlayManager] = None,
) -> Tuple[List[RpcOverlay], List[str]]:
    """Generate an RPC overlay for every state machine contract.

    Args:
        documents: All collected documents
        overlay_manager: Used to build the overlay documents

    Returns:
        Tuple of (generated overlays in contract path order, warnings)
    """
    overlay_manager = overlay_manager or OverlayManager()
    by_path = {document.relative_path: document for document in documents}

    rpc_overlays: List[RpcOverlay] = []
    warnings: List[str] = []
    for document in documents:
        if document.kind is not DocumentKind.STATE_MACHINE:
            continue

        try:
            contract = StateMachineContract.model_validate(document.data)
        except ValidationError as e:
            warnings.append(f"Skipping invalid state machine {document.relative_path}: {e}")
            continue

        api_document = find_api_document(document.relative_path, contract.api_spec, by_path)
        if api_document is None:
            warnings.append(
                f"State machine {document.relative_path} references apiSpec "
                f"{contract.api_spec}, which was not found"
            )
            continue

        overlay, overlay_warnings = generate_rpc_overlay(
            contract, api_document, overlay_manager
        )
        warnings.extend(overlay_warnings)
        if overlay is not None:
            rpc_overlays.append(RpcOverlay(overlay, contract, document.relative_path))

    return rpc_overlays, warnings
