"""Exceptions raised by the overlay resolver.

Only conditions that prevent any output from being produced are raised.
Everything else is reported as a warning string and returned alongside the
resolved value.
"""


class OverlayResolverError(Exception):
    """Base class for fatal resolver errors."""


class MissingInputError(OverlayResolverError, FileNotFoundError):
    """A required input path (base specs, overlays, env file) does not exist."""

    def __init__(self, kind: str, path: str):
        self.kind = kind
        self.path = path
        super().__init__(f"{kind} does not exist: {path}")


class InvalidTargetError(ValueError):
    """A target expression uses syntax outside the supported subset."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"Invalid target {target!r}: {reason}")
