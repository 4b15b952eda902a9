"""``${VAR}`` placeholder substitution in document string values."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dotenv import dotenv_values

from .errors import MissingInputError

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")


def parse_env_file(file_path: str) -> Dict[str, str]:
    """Parse a ``KEY=VALUE`` env file.

    Blank lines and ``#`` comments are ignored, surrounding single or double
    quotes are stripped, and lines without ``=`` are skipped. Values are taken
    literally; ``${...}`` inside the file is not expanded.
    """
    path = Path(file_path)
    if not path.exists():
        raise MissingInputError("Env file", str(path))

    values = dotenv_values(path, interpolate=False)
    return {key: value for key, value in values.items() if value is not None}


def merge_variables(
    file_vars: Mapping[str, str], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """Merge file variables with the process environment, which wins."""
    merged = dict(file_vars)
    merged.update(os.environ if environ is None else environ)
    return merged


def substitute_placeholders(
    node: Any, variables: Mapping[str, str]
) -> Tuple[Any, List[str]]:
    """Replace ``${VAR}`` tokens in every string value of a tree.

    Unresolved placeholders are left as-is.

    Returns:
        Tuple of (substituted copy, unresolved variable names in first-seen
        order without duplicates)
    """
    unresolved: List[str] = []
    return _substitute(node, variables, unresolved), unresolved


def _substitute(node: Any, variables: Mapping[str, str], unresolved: List[str]) -> Any:
    if isinstance(node, str):

        def replace(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name in variables:
                return str(variables[name])
            if name not in unresolved:
                unresolved.append(name)
            return match.group(0)

        return PLACEHOLDER_PATTERN.sub(replace, node)

    if isinstance(node, list):
        return [_substitute(item, variables, unresolved) for item in node]

    if isinstance(node, dict):
        return {
            key: _substitute(value, variables, unresolved)
            for key, value in node.items()
        }

    return node
