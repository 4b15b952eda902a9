"""Deciding which documents each overlay action applies to.

Resolution runs in two passes. The first records, for every action, the
documents in which the full target path exists. The second narrows those
matches with the action's disambiguators:

- target found in no document: warning, nothing applied
- target found in exactly one document: applied there
- target found in several documents: warning, nothing applied, unless
  ``file``/``files``, ``target-api`` or ``target-version`` narrows it down

An ambiguous action is never applied to an arbitrary document.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from ..documents import Document
from ..errors import InvalidTargetError
from .models import Overlay, OverlayAction
from .target_locator import check_path_exists

logger = logging.getLogger(__name__)

TargetMap = Dict[int, List[str]]


class FileMatch(BaseModel):
    """A document in which an action's full target path exists."""

    relative_path: str
    api_id: Optional[str] = None
    version: int = 1


class ActionMatches(BaseModel):
    """Everything the resolver needs to know about one action."""

    action: OverlayAction
    matching_files: List[FileMatch] = Field(default_factory=list)
    error: Optional[str] = None


def analyze_target_locations(
    overlay: Overlay, documents: Sequence[Document]
) -> Dict[int, ActionMatches]:
    """For each action, find the documents containing the full target path."""
    action_matches: Dict[int, ActionMatches] = {}

    for index, action in enumerate(overlay.actions):
        if not action.target:
            action_matches[index] = ActionMatches(
                action=action, error="action has no target"
            )
            continue

        matching_files: List[FileMatch] = []
        try:
            for document in documents:
                if check_path_exists(document.data, action.target).full_path_exists:
                    matching_files.append(
                        FileMatch(
                            relative_path=document.relative_path,
                            api_id=document.api_id,
                            version=document.version,
                        )
                    )
        except InvalidTargetError as e:
            action_matches[index] = ActionMatches(action=action, error=str(e))
            continue

        logger.debug(f"{action.target}: found in {len(matching_files)} file(s)")
        action_matches[index] = ActionMatches(
            action=action, matching_files=matching_files
        )

    return action_matches


def resolve_action_targets(
    action_matches: Dict[int, ActionMatches],
) -> Tuple[TargetMap, List[str]]:
    """Determine the documents each action applies to.

    Args:
        action_matches: Output of :func:`analyze_target_locations`

    Returns:
        Tuple of (action index -> relative paths, warnings)
    """
    warnings: List[str] = []
    action_targets: TargetMap = {}

    for index, info in action_matches.items():
        action = info.action
        label = action.label

        if info.error:
            warnings.append(f"Skipping action: {info.error} (action: \"{label}\")")
            action_targets[index] = []
            continue

        match_paths = [match.relative_path for match in info.matching_files]

        specified_files = action.explicit_files
        if specified_files:
            valid_files = [f for f in specified_files if f in match_paths]
            invalid_files = [f for f in specified_files if f not in match_paths]
            if invalid_files:
                warnings.append(
                    f"Target {action.target} does not exist in specified file(s): "
                    f"{', '.join(invalid_files)} (action: \"{label}\")"
                )
            action_targets[index] = valid_files
            continue

        filtered = info.matching_files
        if action.target_api:
            filtered = [m for m in filtered if m.api_id == action.target_api]
        if action.target_version is not None:
            filtered = [m for m in filtered if m.version == action.target_version]
        filtered_paths = [match.relative_path for match in filtered]

        if not filtered_paths:
            if not match_paths:
                warnings.append(
                    f"Target {action.target} does not exist in any file "
                    f"(action: \"{label}\")"
                )
            else:
                warnings.append(
                    f"Target {action.target} matched {len(match_paths)} file(s) but "
                    f"none passed target-api/target-version filters "
                    f"(action: \"{label}\")"
                )
            action_targets[index] = []
        elif len(filtered_paths) == 1:
            action_targets[index] = filtered_paths
        else:
            warnings.append(
                f"Target {action.target} exists in multiple files "
                f"({', '.join(filtered_paths)}). Use file, target-api, or "
                f"target-version to disambiguate (action: \"{label}\")"
            )
            action_targets[index] = []

    return action_targets, warnings


def resolve_overlay_targets(
    overlay: Overlay, documents: Sequence[Document]
) -> Tuple[TargetMap, List[str]]:
    """Run both resolution passes for one overlay."""
    return resolve_action_targets(analyze_target_locations(overlay, documents))
