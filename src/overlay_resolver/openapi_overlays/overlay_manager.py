"""OpenAPI overlay management functionality."""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from ..documents import (
    OVERLAY_MARKER,
    Document,
    is_overlay_data,
    iter_yaml_files,
    load_yaml,
)
from ..errors import InvalidTargetError
from .models import Overlay, OverlayAction
from .target_locator import Segment, get_value, mapping_key, parse_target, step
from .target_resolver import TargetMap

logger = logging.getLogger(__name__)


def _resolve_key(node: Any, segment: Segment) -> Any:
    """Key under which ``segment`` is (or would be) stored in ``node``."""
    if not isinstance(node, dict):
        return segment
    key = mapping_key(node, segment)
    if key not in node and isinstance(segment, int):
        return str(segment)
    return key


def _merge_value(current: Any, value: Any) -> Any:
    """Combine an update value with the node it targets."""
    value = copy.deepcopy(value)
    if isinstance(current, dict) and isinstance(value, dict):
        # Shallow merge: keys of the update replace same-named keys
        current.update(value)
        return current
    if isinstance(current, list):
        if isinstance(value, list):
            current.extend(value)
        else:
            current.append(value)
        return current
    return value


class OverlayManager:
    """Manages OpenAPI overlay loading, discovery, and application."""

    def load_overlay(self, overlay_path: str) -> Optional[Overlay]:
        """Load overlay file from disk.

        Args:
            overlay_path: Path to the overlay file

        Returns:
            Parsed overlay, or None if the file doesn't exist, can't be parsed
            or isn't an overlay document
        """
        path = Path(overlay_path)
        if not path.exists():
            return None

        try:
            data = load_yaml(path)
        except (OSError, yaml.YAMLError) as e:
            logger.debug(f"Skipping unparseable file {path}: {e}")
            return None

        if not is_overlay_data(data):
            return None

        return Overlay.from_dict(data)

    def discover_overlays(
        self, overlays_path: str
    ) -> Tuple[List[Tuple[Path, Overlay]], List[str]]:
        """Find every overlay document under a directory (or a single file).

        Files without the ``overlay: 1.0.0`` marker, and files that fail to
        parse, are skipped silently. Overlays whose actions are malformed are
        skipped with a warning.

        Returns:
            Tuple of ((path, overlay) pairs sorted by path, warnings)
        """
        root = Path(overlays_path)
        if not root.exists():
            return [], []

        paths = [root] if root.is_file() else list(iter_yaml_files(root))

        found: List[Tuple[Path, Overlay]] = []
        warnings: List[str] = []
        for path in sorted(paths):
            try:
                overlay = self.load_overlay(str(path))
            except ValidationError as e:
                warnings.append(f"Skipping invalid overlay {path}: {e}")
                continue
            if overlay is not None:
                found.append((path, overlay))
        return found, warnings

    def create_overlay(
        self,
        title: str,
        actions: List[Dict[str, Any]],
        version: str = "1.0.0",
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build an overlay document from a list of raw actions.

        Args:
            title: Overlay title
            actions: Action mappings in overlay-document form
            version: Overlay version
            description: Optional overlay description

        Returns:
            Overlay document as a plain dictionary
        """
        info: Dict[str, Any] = {"title": title, "version": version}
        if description:
            info["description"] = description
        return {"overlay": OVERLAY_MARKER, "info": info, "actions": actions}

    def apply_action(self, spec: Any, action: OverlayAction) -> Tuple[Any, List[str]]:
        """Apply a single action to a document.

        The input is never modified; a new tree is returned even when the
        action fails.

        Args:
            spec: The document to modify
            action: The action to apply

        Returns:
            Tuple of (modified document, warnings)
        """
        result = copy.deepcopy(spec)
        label = action.label

        directives = action.directives
        if len(directives) != 1:
            found = ", ".join(directives) if directives else "none"
            return result, [
                f"Action must have exactly one of update/remove/rename, "
                f"found: {found} (action: \"{label}\")"
            ]

        try:
            segments = parse_target(action.target or "")
        except InvalidTargetError as e:
            return result, [f"{e} (action: \"{label}\")"]

        if directives[0] == "update":
            return self._apply_update(result, segments, action)
        if directives[0] == "remove":
            return self._apply_remove(result, segments, action)
        return self._apply_rename(result, segments, action)

    def _apply_update(
        self, result: Any, segments: List[Segment], action: OverlayAction
    ) -> Tuple[Any, List[str]]:
        if not segments:
            return _merge_value(result, action.update), []

        node = result
        for segment in segments[:-1]:
            found, child = step(node, segment)
            if not found:
                if not isinstance(node, dict):
                    return result, [
                        f"Cannot update {action.target}: '{segment}' is not a "
                        f"mapping key (action: \"{action.label}\")"
                    ]
                child = {}
                node[_resolve_key(node, segment)] = child
            node = child

        last = segments[-1]
        found, current = step(node, last)
        if found:
            node[_resolve_key(node, last)] = _merge_value(current, action.update)
        elif isinstance(node, dict):
            node[_resolve_key(node, last)] = copy.deepcopy(action.update)
        else:
            return result, [
                f"Cannot update {action.target}: parent is not a mapping "
                f"(action: \"{action.label}\")"
            ]
        return result, []

    def _apply_remove(
        self, result: Any, segments: List[Segment], action: OverlayAction
    ) -> Tuple[Any, List[str]]:
        if not segments:
            return result, [
                f"Cannot remove the document root (action: \"{action.label}\")"
            ]

        try:
            parent = get_value(result, segments[:-1])
        except KeyError:
            parent = None

        last = segments[-1]
        found, _ = step(parent, last)
        if not found:
            return result, [
                f"Cannot remove {action.target}: key does not exist "
                f"(action: \"{action.label}\")"
            ]

        key = _resolve_key(parent, last)
        if isinstance(parent, dict):
            del parent[key]
        else:
            parent.pop(key)
        return result, []

    def _apply_rename(
        self, result: Any, segments: List[Segment], action: OverlayAction
    ) -> Tuple[Any, List[str]]:
        new_key = action.rename
        if not segments or not new_key:
            return result, [
                f"Cannot rename {action.target}: rename needs a key target and "
                f"a new name (action: \"{action.label}\")"
            ]

        try:
            parent = get_value(result, segments[:-1])
        except KeyError:
            parent = None

        last = segments[-1]
        found, _ = step(parent, last)
        if not found or not isinstance(parent, dict):
            return result, [
                f"Cannot rename {action.target}: key does not exist "
                f"(action: \"{action.label}\")"
            ]

        value = parent.pop(_resolve_key(parent, last))
        parent[new_key] = value
        return result, []

    def apply(self, spec: Any, overlay: Overlay) -> Tuple[Any, List[str]]:
        """Apply every action of an overlay to one document, in order.

        Args:
            spec: The OpenAPI specification to modify
            overlay: The overlay containing transformation actions

        Returns:
            Tuple of (modified specification, warnings)
        """
        warnings: List[str] = []
        modified_spec = copy.deepcopy(spec)
        for action in overlay.actions:
            modified_spec, action_warnings = self.apply_action(modified_spec, action)
            warnings.extend(action_warnings)
        return modified_spec, warnings

    def apply_with_targets(
        self,
        documents: Dict[str, Document],
        overlay: Overlay,
        action_targets: TargetMap,
    ) -> Tuple[Dict[str, Document], List[str]]:
        """Apply each action only to the documents it was resolved to.

        Args:
            documents: Current snapshots keyed by relative path
            overlay: The overlay whose actions are applied
            action_targets: Action index -> relative paths, from the resolver

        Returns:
            Tuple of (new snapshots keyed by relative path, warnings)
        """
        results = dict(documents)
        warnings: List[str] = []

        for index, action in enumerate(overlay.actions):
            for relative_path in action_targets.get(index, []):
                document = results.get(relative_path)
                if document is None:
                    continue

                data, action_warnings = self.apply_action(document.data, action)
                results[relative_path] = document.with_data(data)
                warnings.extend(action_warnings)

                if not action_warnings:
                    logger.info(f"  - Applied: {action.label} -> {relative_path}")

        return results, warnings
