"""Manages a single resolution run over a set of specifications.

This module sequences the resolution stages: collect the base documents,
apply generated RPC overlays, apply overlay files in sorted order, filter by
environment, substitute placeholders, optionally bundle and reconcile
examples, then write the resolved tree. Every stage takes the current
snapshots and returns new ones together with its warnings.
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple

from .bundler import Bundler, is_bundle_entrypoint, is_examples_document
from .config import Config
from .documents import (
    Document,
    DocumentKind,
    collect_documents,
    collection_root,
    load_yaml,
    write_yaml,
)
from .environment import filter_by_environment
from .errors import MissingInputError, OverlayResolverError
from .examples import reconcile_examples
from .openapi_overlays.models import Overlay
from .openapi_overlays.overlay_manager import OverlayManager
from .openapi_overlays.target_resolver import resolve_overlay_targets
from .placeholders import merge_variables, parse_env_file, substitute_placeholders
from .rpc_overlays import generate_rpc_overlays

logger = logging.getLogger(__name__)

Snapshots = Dict[str, Document]


class ResolveResult(NamedTuple):
    """Resolved documents keyed by relative path, plus every warning."""

    documents: Snapshots
    warnings: List[str]


class SpecManager:
    """Resolves overlays, environments and placeholders for a spec tree."""

    def __init__(self, config: Config, environ: Optional[Mapping[str, str]] = None):
        self.config = config
        self.base_path = Path(config.base)
        self.out_dir = Path(config.out)
        self.overlay_manager = OverlayManager()
        # None means the process environment
        self.environ = environ

    def check_inputs(self) -> None:
        """Fail before producing any output if a required input is missing."""
        if not self.base_path.exists():
            raise MissingInputError("Base specs path", str(self.base_path))
        if self.config.overlays and not Path(self.config.overlays).exists():
            raise MissingInputError("Overlays path", self.config.overlays)
        if self.config.env_file and not Path(self.config.env_file).exists():
            raise MissingInputError("Env file", self.config.env_file)

        out = self.out_dir.resolve()
        base = self.base_path.resolve()
        if out == base or out in base.parents:
            raise OverlayResolverError(
                f"Output directory {self.out_dir} must not contain the base specs"
            )

    def collect(self) -> Tuple[Snapshots, List[str]]:
        """Load base documents, leaving overlay sources out of the result."""
        documents, warnings = collect_documents(self.base_path, exclude=self.out_dir)
        snapshots: Snapshots = {}
        for document in documents:
            if document.kind is DocumentKind.OVERLAY:
                logger.debug(f"Excluding overlay source {document.relative_path}")
                continue
            snapshots[document.relative_path] = document
        return snapshots, warnings

    def apply_overlay(
        self, snapshots: Snapshots, overlay: Overlay
    ) -> Tuple[Snapshots, List[str]]:
        """Resolve targets against the latest snapshots, then apply."""
        action_targets, warnings = resolve_overlay_targets(overlay, list(snapshots.values()))
        results, apply_warnings = self.overlay_manager.apply_with_targets(
            snapshots, overlay, action_targets
        )
        return results, warnings + apply_warnings

    def apply_rpc_overlays(self, snapshots: Snapshots) -> Tuple[Snapshots, List[str]]:
        rpc_overlays, warnings = generate_rpc_overlays(
            list(snapshots.values()), self.overlay_manager
        )
        for rpc in rpc_overlays:
            logger.info(f"RPC overlay: {rpc.overlay.info.title} (from {rpc.source_path})")
            snapshots, overlay_warnings = self.apply_overlay(snapshots, rpc.overlay)
            warnings.extend(overlay_warnings)
        return snapshots, warnings

    def apply_overlay_files(
        self, snapshots: Snapshots, overlays_path: str
    ) -> Tuple[Snapshots, List[str]]:
        discovered, warnings = self.overlay_manager.discover_overlays(overlays_path)
        if not discovered:
            logger.info("No overlay files found")
            return snapshots, warnings

        logger.info(f"Overlays:   {overlays_path}")
        for overlay_path, overlay in discovered:
            logger.info(f"Overlay: {overlay.info.title or overlay_path.name}")
            if overlay.info.version:
                logger.info(f"Version: {overlay.info.version}")
            snapshots, overlay_warnings = self.apply_overlay(snapshots, overlay)
            warnings.extend(overlay_warnings)
        return snapshots, warnings

    def filter_environment(self, snapshots: Snapshots, env: str) -> Snapshots:
        logger.info(f"Environment: {env}")
        results: Snapshots = {}
        for relative_path, document in snapshots.items():
            data = filter_by_environment(document.data, env)
            if data is None and document.data is not None:
                logger.info(f"  - Removed {relative_path}: not part of {env}")
                continue
            results[relative_path] = document.with_data(data)
        return results

    def substitute(self, snapshots: Snapshots, env_file: str) -> Tuple[Snapshots, List[str]]:
        logger.info(f"Env file:   {env_file}")
        variables = merge_variables(parse_env_file(env_file), self.environ)

        results: Snapshots = {}
        unresolved: List[str] = []
        for relative_path, document in snapshots.items():
            data, names = substitute_placeholders(document.data, variables)
            results[relative_path] = document.with_data(data)
            unresolved.extend(name for name in names if name not in unresolved)

        warnings = [f"Unresolved placeholder: ${{{name}}}" for name in unresolved]
        return results, warnings

    def bundle(self, snapshots: Snapshots) -> Tuple[Snapshots, List[str]]:
        """Dereference OpenAPI documents and drop the files they inlined."""
        logger.info("Bundling: inlining $refs...")
        bundler = Bundler(collection_root(self.base_path), snapshots)

        results: Snapshots = {}
        warnings: List[str] = []
        for relative_path, document in snapshots.items():
            if is_bundle_entrypoint(document):
                data, bundle_warnings = bundler.bundle(relative_path)
                warnings.extend(bundle_warnings)
                results[relative_path] = document.with_data(data)
                logger.info(f"  - Bundled {relative_path}")
            elif is_examples_document(relative_path):
                results[relative_path] = document
        return results, warnings

    def resolve(self) -> ResolveResult:
        """Run every requested stage in memory, without writing anything."""
        self.check_inputs()
        logger.info(f"Base specs: {self.base_path}")

        snapshots, warnings = self.collect()

        if self.config.rpc:
            snapshots, stage_warnings = self.apply_rpc_overlays(snapshots)
            warnings.extend(stage_warnings)

        if self.config.overlays:
            snapshots, stage_warnings = self.apply_overlay_files(snapshots, self.config.overlays)
            warnings.extend(stage_warnings)

        if self.config.env:
            snapshots = self.filter_environment(snapshots, self.config.env)

        if self.config.env_file:
            snapshots, stage_warnings = self.substitute(snapshots, self.config.env_file)
            warnings.extend(stage_warnings)

        if self.config.bundle:
            snapshots, stage_warnings = self.bundle(snapshots)
            warnings.extend(stage_warnings)

        if self.config.reconcile_examples:
            snapshots, stage_warnings = reconcile_examples(snapshots)
            warnings.extend(stage_warnings)

        return ResolveResult(snapshots, warnings)

    def prepare_output_dir(self) -> None:
        """Clean and recreate the output directory."""
        if self.out_dir.exists():
            shutil.rmtree(self.out_dir)
        self.out_dir.mkdir(parents=True, exist_ok=True)

    def save_resolved_specs(self, documents: Snapshots) -> None:
        """Write resolved documents under the output directory."""
        for relative_path, document in documents.items():
            write_yaml(self.out_dir / relative_path, document.data)
        logger.info(f"Resolved specs written to {self.out_dir}")

    def copy_base_specs(self) -> None:
        """Copy base specs to the output directory unchanged."""
        if self.base_path.is_file():
            shutil.copy2(self.base_path, self.out_dir / self.base_path.name)
            return

        out = self.out_dir.resolve()
        for entry in sorted(self.base_path.iterdir()):
            # Skip the output directory itself when it is nested in the base
            if entry.resolve() == out:
                continue
            target = self.out_dir / entry.name
            if entry.is_dir():
                shutil.copytree(entry, target, ignore=self._ignore_output_dir)
            else:
                shutil.copy2(entry, target)
        logger.info(f"Base specs copied to {self.out_dir}")

    def _ignore_output_dir(self, directory: str, names: List[str]) -> List[str]:
        out = self.out_dir.resolve()
        return [name for name in names if (Path(directory) / name).resolve() == out]

    def run(self) -> ResolveResult:
        """Resolve the specs and write them out.

        With no transformation requested, the base specs are copied as-is.
        """
        if not self.config.has_transformations:
            self.check_inputs()
            logger.info("No flags specified, copying base specs unchanged")
            self.prepare_output_dir()
            self.copy_base_specs()
            return ResolveResult({}, [])

        result = self.resolve()
        self.prepare_output_dir()
        self.save_resolved_specs(result.documents)
        return result

    def load_resolved_spec(self, relative_path: str) -> Optional[Any]:
        """Load a resolved document back from the output directory."""
        path = self.out_dir / relative_path
        if not path.exists():
            return None
        return load_yaml(path)
