"""Package initialization for overlay_resolver."""

__version__ = "0.1.0"
__description__ = "Resolve layered OpenAPI overlays into environment-specific spec trees"

from .config import Config
from .documents import Document, DocumentKind
from .openapi_overlays import Overlay, OverlayAction, OverlayManager
from .spec_manager import ResolveResult, SpecManager

__all__ = [
    "Config",
    "Document",
    "DocumentKind",
    "Overlay",
    "OverlayAction",
    "OverlayManager",
    "ResolveResult",
    "SpecManager",
]
