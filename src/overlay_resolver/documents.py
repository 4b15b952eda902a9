"""Loading, classifying and writing YAML documents.

Every YAML file under the base path becomes a :class:`Document` tagged with
its path relative to the collection root. Classification into overlays,
state machine contracts and plain documents happens once, here, so the rest
of the pipeline can switch on :class:`DocumentKind` instead of probing
marker fields again.
"""

import logging
import re
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Iterator, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

OVERLAY_MARKER = "1.0.0"
STATE_MACHINE_SCHEMA_KEYWORD = "state-machine-schema"
YAML_SUFFIXES = (".yaml", ".yml")

_VERSION_SUFFIX = re.compile(r"-v(\d+)$")


class DocumentKind(str, Enum):
    """Closed set of document kinds recognised at load time."""

    OVERLAY = "overlay"
    STATE_MACHINE = "state-machine"
    PLAIN = "plain"


class NoAliasDumper(yaml.SafeDumper):
    """YAML dumper that writes shared nodes out in full instead of as aliases."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def version_from_filename(relative_path: str) -> int:
    """Extract the version number from a spec filename.

    No suffix means version 1, a ``-v2`` suffix means version 2, and so on.
    """
    name = PurePosixPath(relative_path).name
    for suffix in YAML_SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    match = _VERSION_SUFFIX.search(name)
    return int(match.group(1)) if match else 1


def is_overlay_data(data: Any) -> bool:
    return isinstance(data, dict) and data.get("overlay") == OVERLAY_MARKER


def is_state_machine_data(data: Any, relative_path: str = "") -> bool:
    if not isinstance(data, dict):
        return False
    if "transitions" not in data or "apiSpec" not in data:
        return False
    schema = data.get("$schema")
    if isinstance(schema, str) and STATE_MACHINE_SCHEMA_KEYWORD in schema:
        return True
    name = PurePosixPath(relative_path).name
    return any(name.endswith(f"-state-machine{suffix}") for suffix in YAML_SUFFIXES)


def classify_document(relative_path: str, data: Any) -> DocumentKind:
    """Decide which kind of document a parsed YAML tree is."""
    if is_overlay_data(data):
        return DocumentKind.OVERLAY
    if is_state_machine_data(data, relative_path):
        return DocumentKind.STATE_MACHINE
    return DocumentKind.PLAIN


class Document(BaseModel):
    """A parsed YAML document and where it came from."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    relative_path: str
    data: Any = None
    source_path: Optional[Path] = None
    kind: DocumentKind = DocumentKind.PLAIN

    @classmethod
    def from_data(
        cls, relative_path: str, data: Any, source_path: Optional[Path] = None
    ) -> "Document":
        return cls(
            relative_path=relative_path,
            data=data,
            source_path=source_path,
            kind=classify_document(relative_path, data),
        )

    @property
    def api_id(self) -> Optional[str]:
        """The ``info.x-api-id`` of the document, if it declares one."""
        if not isinstance(self.data, dict):
            return None
        info = self.data.get("info")
        if not isinstance(info, dict):
            return None
        return info.get("x-api-id") or None

    @property
    def version(self) -> int:
        return version_from_filename(self.relative_path)

    def with_data(self, data: Any) -> "Document":
        """Return a snapshot of this document holding new data."""
        return self.model_copy(update={"data": data})


def load_yaml(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def dump_yaml(data: Any) -> str:
    return yaml.dump(
        data,
        Dumper=NoAliasDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=4096,
    )


def write_yaml(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(dump_yaml(data))


def iter_yaml_files(root: Path, exclude: Optional[Path] = None) -> Iterator[Path]:
    """Yield YAML files under ``root`` in sorted order, skipping ``exclude``."""
    excluded = exclude.resolve() if exclude is not None else None
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix not in YAML_SUFFIXES:
            continue
        if excluded is not None and (
            path.resolve() == excluded or excluded in path.resolve().parents
        ):
            continue
        yield path


def collection_root(base_path: Path) -> Path:
    """Directory that relative paths are computed against."""
    return base_path if base_path.is_dir() else base_path.parent


def collect_documents(
    base_path: Path, exclude: Optional[Path] = None
) -> Tuple[List[Document], List[str]]:
    """Load every YAML document under ``base_path`` (a directory or a file).

    Returns the documents sorted by relative path and a list of warnings for
    files that could not be parsed.
    """
    warnings: List[str] = []
    if base_path.is_file():
        paths: List[Path] = [base_path]
    else:
        paths = list(iter_yaml_files(base_path, exclude))

    root = collection_root(base_path)
    documents: List[Document] = []
    for path in paths:
        relative_path = path.relative_to(root).as_posix()
        try:
            data = load_yaml(path)
        except yaml.YAMLError as e:
            warnings.append(f"Could not parse {relative_path}: {e}")
            continue
        document = Document.from_data(relative_path, data, source_path=path)
        logger.debug(f"Loaded {relative_path} ({document.kind.value})")
        documents.append(document)
    return documents, warnings
