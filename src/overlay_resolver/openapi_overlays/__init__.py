"""OpenAPI overlay functionality for modifying OpenAPI specifications.

This package provides utilities for loading, resolving and applying overlays
to a set of OpenAPI documents. Each overlay action is matched against every
document first, and only applied where its target can be located without
ambiguity.
"""

from .models import Overlay, OverlayAction, OverlayInfo
from .overlay_manager import OverlayManager
from .target_locator import PathCheck, check_path_exists, parse_target
from .target_resolver import (
    ActionMatches,
    FileMatch,
    analyze_target_locations,
    resolve_action_targets,
    resolve_overlay_targets,
)

__all__ = [
    "ActionMatches",
    "FileMatch",
    "Overlay",
    "OverlayAction",
    "OverlayInfo",
    "OverlayManager",
    "PathCheck",
    "analyze_target_locations",
    "check_path_exists",
    "parse_target",
    "resolve_action_targets",
    "resolve_overlay_targets",
]
