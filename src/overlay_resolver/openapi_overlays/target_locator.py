"""Locating overlay targets inside a document.

Targets use a restricted, property-traversal-only subset of JSONPath::

    $.components.schemas.Pizza.properties
    $.paths['/pizzas/{pizzaId}'].get
    $["x-tag-groups"][0].name

There are no wildcards, recursive descent or filter expressions. Each
segment names exactly one mapping key (or list index), so a target either
points at one node or at nothing.
"""

from typing import Any, Dict, List, NamedTuple, Tuple, Union

from ..errors import InvalidTargetError

Segment = Union[str, int]

_UNSUPPORTED = ("*", "..", "?(", "@")


class PathCheck(NamedTuple):
    """Result of walking a target expression through a document."""

    full_path_exists: bool
    matched_segments: int


def parse_target(target: str) -> List[Segment]:
    """Split a target expression into its key/index segments.

    Raises:
        InvalidTargetError: if the expression uses unsupported syntax
    """
    if not isinstance(target, str):
        raise InvalidTargetError(str(target), "target must be a string")

    expr = target.strip()
    for token in _UNSUPPORTED:
        if token in expr and not _inside_quotes(expr, token):
            raise InvalidTargetError(target, f"'{token}' is not supported")

    if expr.startswith("$"):
        expr = expr[1:]

    segments: List[Segment] = []
    i = 0
    length = len(expr)
    while i < length:
        char = expr[i]
        if char == ".":
            i += 1
            name, i = _read_name(expr, i)
            if not name:
                raise InvalidTargetError(target, f"empty segment at position {i}")
            segments.append(name)
        elif char == "[":
            segment, i = _read_bracket(target, expr, i)
            segments.append(segment)
        elif i == 0:
            name, i = _read_name(expr, i)
            segments.append(name)
        else:
            raise InvalidTargetError(target, f"unexpected '{char}' at position {i}")
    return segments


def _inside_quotes(expr: str, token: str) -> bool:
    """Whether every occurrence of ``token`` sits inside a quoted key."""
    quote = None
    i = 0
    while i < len(expr):
        char = expr[i]
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif expr.startswith(token, i):
            return False
        i += 1
    return True


def _read_name(expr: str, start: int) -> Tuple[str, int]:
    end = start
    while end < len(expr) and expr[end] not in ".[":
        end += 1
    return expr[start:end].strip(), end


def _read_bracket(target: str, expr: str, start: int) -> Tuple[Segment, int]:
    i = start + 1
    if i < len(expr) and expr[i] in ("'", '"'):
        quote = expr[i]
        close = expr.find(quote + "]", i + 1)
        if close == -1:
            raise InvalidTargetError(target, "unterminated quoted segment")
        return expr[i + 1 : close], close + 2

    close = expr.find("]", i)
    if close == -1:
        raise InvalidTargetError(target, "unterminated bracket segment")
    raw = expr[i:close].strip()
    if not raw.isdigit():
        raise InvalidTargetError(target, f"bracket segment '{raw}' must be quoted or an index")
    return int(raw), close + 1


def mapping_key(node: Dict[Any, Any], segment: Segment) -> Any:
    """Key under which ``segment`` is stored in ``node``.

    YAML reads unquoted keys such as ``200:`` as integers, so ``200`` and
    ``"200"`` name the same key. Returns ``segment`` unchanged when neither
    form is present.
    """
    if segment in node:
        return segment
    if isinstance(segment, int) and str(segment) in node:
        return str(segment)
    if isinstance(segment, str) and segment.isdigit() and int(segment) in node:
        return int(segment)
    return segment


def step(node: Any, segment: Segment) -> Tuple[bool, Any]:
    """Move one segment down the tree, reporting whether it exists."""
    if isinstance(node, dict):
        key = mapping_key(node, segment)
        if key in node:
            return True, node[key]
        return False, None
    if isinstance(node, list) and isinstance(segment, int):
        if 0 <= segment < len(node):
            return True, node[segment]
    return False, None


def check_path_exists(document: Any, target: str) -> PathCheck:
    """Check whether every segment of ``target`` resolves inside ``document``."""
    segments = parse_target(target)
    node = document
    for index, segment in enumerate(segments):
        found, node = step(node, segment)
        if not found:
            return PathCheck(False, index)
    return PathCheck(True, len(segments))


def get_value(document: Any, segments: List[Segment]) -> Any:
    """Return the node at ``segments``.

    Raises:
        KeyError: if any segment is missing
    """
    node = document
    for segment in segments:
        found, node = step(node, segment)
        if not found:
            raise KeyError(segment)
    return node
