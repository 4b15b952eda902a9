"""Configuration management for the overlay resolver.

This module handles loading and validating the resolver's options. Options
can come from a YAML file, from command-line flags, or both; flags given on
the command line override values from the file.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field


class Config(BaseModel):
    """Options for a single resolution run."""

    config_path: Optional[str] = Field(
        default=None, description="Path to the loaded config file"
    )
    base: str = Field(
        default="packages/contracts",
        description="Base specs directory or single YAML file",
    )
    overlays: Optional[str] = Field(
        default=None, description="Overlay directory or single overlay file"
    )
    out: str = Field(
        default="packages/resolved", description="Output directory for resolved specs"
    )
    env: Optional[str] = Field(
        default=None, description="Target environment for x-environments filtering"
    )
    env_file: Optional[str] = Field(
        default=None, description="KEY=VALUE file for ${VAR} placeholder substitution"
    )
    bundle: bool = Field(
        default=False, description="Dereference all $refs into self-contained specs"
    )
    reconcile_examples: bool = Field(
        default=False,
        description="Drop example keys that no longer exist in the resolved schema",
    )
    rpc: bool = Field(
        default=True,
        description="Generate RPC endpoints from state machine contracts",
    )

    @property
    def has_transformations(self) -> bool:
        """Whether any processing stage was requested.

        Without one, the base specs are copied to the output unchanged.
        """
        return bool(
            self.overlays
            or self.env
            or self.env_file
            or self.bundle
            or self.reconcile_examples
        )

    @classmethod
    def load(cls, config_path: str) -> "Config":
        """Load configuration from a YAML file."""
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, "r") as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Invalid configuration in {config_path}: {config_data}")

        # Accept the CLI spelling of options as well
        normalized: Dict[str, Any] = {
            key.replace("-", "_"): value for key, value in config_data.items()
        }
        normalized.pop("config_path", None)

        config = cls(**normalized)
        config.config_path = config_path
        return config

    def save(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(exclude={"config_path"})

        with open(path, "w") as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

    def merged(self, **overrides: Any) -> "Config":
        """Return a copy with every non-None override applied."""
        updates = {key: value for key, value in overrides.items() if value is not None}
        return self.model_copy(update=updates)
