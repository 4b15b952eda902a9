"""Pydantic models for overlay documents."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..documents import OVERLAY_MARKER

MUTATION_DIRECTIVES = ("update", "remove", "rename")


class OverlayInfo(BaseModel):
    """Descriptive metadata of an overlay."""

    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None

    @field_validator("version", mode="before")
    @classmethod
    def _stringify_version(cls, value: Any) -> Any:
        # YAML reads an unquoted 1.0 as a float
        return str(value) if isinstance(value, (int, float)) else value


class OverlayAction(BaseModel):
    """A single overlay mutation plus its optional disambiguators."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    target: Optional[str] = None
    description: Optional[str] = None
    update: Any = None
    remove: bool = False
    rename: Optional[str] = None
    file: Optional[str] = None
    files: Optional[List[str]] = None
    target_api: Optional[str] = Field(default=None, alias="target-api")
    target_version: Optional[int] = Field(default=None, alias="target-version")

    @property
    def label(self) -> str:
        """How warnings and log lines refer to this action."""
        return self.description or self.target or "<no target>"

    @property
    def explicit_files(self) -> Optional[List[str]]:
        """Files named with ``files`` (preferred) or ``file``."""
        if self.files:
            return list(self.files)
        if self.file:
            return [self.file]
        return None

    @property
    def directives(self) -> List[str]:
        """Names of the mutation directives this action carries."""
        found = []
        if "update" in self.model_fields_set:
            found.append("update")
        if self.remove:
            found.append("remove")
        if self.rename is not None:
            found.append("rename")
        return found


class Overlay(BaseModel):
    """An ordered list of actions plus descriptive metadata."""

    model_config = ConfigDict(extra="allow")

    overlay: str = OVERLAY_MARKER
    info: OverlayInfo = Field(default_factory=OverlayInfo)
    actions: List[OverlayAction] = Field(default_factory=list)

    @field_validator("actions", mode="before")
    @classmethod
    def _actions_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Overlay":
        return cls.model_validate(data)
