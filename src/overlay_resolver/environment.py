"""Environment filtering of document trees.

Any mapping node may carry an ``x-environments`` list. When resolving for a
target environment, nodes whose list does not include it are removed, and the
tag itself is stripped from every node that survives so it never leaks into
resolved output. Filtering an already-filtered tree changes nothing.
"""

from typing import Any, List, Optional

ENVIRONMENTS_KEY = "x-environments"


def _environments(node: Any) -> Optional[List[Any]]:
    if not isinstance(node, dict) or ENVIRONMENTS_KEY not in node:
        return None
    value = node[ENVIRONMENTS_KEY]
    if value is None:
        return None
    return list(value) if isinstance(value, (list, tuple)) else [value]


def is_kept(node: Any, target_env: str) -> bool:
    """Whether ``node`` survives filtering for ``target_env``."""
    environments = _environments(node)
    return environments is None or target_env in environments


def filter_by_environment(node: Any, target_env: str) -> Any:
    """Recursively filter a tree by ``x-environments``.

    Returns the filtered copy, or None if ``node`` itself is removed.
    """
    if isinstance(node, list):
        return [
            filter_by_environment(item, target_env)
            for item in node
            if is_kept(item, target_env)
        ]

    if not isinstance(node, dict):
        return node

    if not is_kept(node, target_env):
        return None

    result = {}
    for key, value in node.items():
        if key == ENVIRONMENTS_KEY:
            continue
        if isinstance(value, dict):
            if not is_kept(value, target_env):
                continue
            result[key] = filter_by_environment(value, target_env)
        else:
            result[key] = filter_by_environment(value, target_env)
    return result
