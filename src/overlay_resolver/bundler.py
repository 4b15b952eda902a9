"""Dereferencing ``$ref`` values into self-contained documents.

Both internal (``#/components/schemas/Foo``) and relative-file
(``./components/responses.yaml#/NotFound``) references are inlined.
Referenced files are looked up in the in-memory snapshots first, so the
effects of overlays on shared component files are kept. Files that were not
collected are read from disk relative to the collection root.

Circular references are left in place as ``$ref``.
"""

import copy
import logging
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Mapping, Set, Tuple

import yaml

from .documents import Document, load_yaml
from .openapi_overlays.target_locator import mapping_key

logger = logging.getLogger(__name__)

RefKey = Tuple[str, str]


def _looks_like_url(ref: str) -> bool:
    return "://" in ref


def split_ref(ref: str) -> Tuple[str, str]:
    """Split a $ref into (path part, fragment without '#').

    Examples:
      "foo.yaml#/a/b" -> ("foo.yaml", "/a/b")
      "foo.yaml"      -> ("foo.yaml", "")
      "#/a/b"         -> ("", "/a/b")
    """
    if "#" not in ref:
        return ref, ""
    path, fragment = ref.split("#", 1)
    return path, fragment


def _decode_pointer_token(token: str) -> str:
    # JSON Pointer escaping per RFC 6901
    return token.replace("~1", "/").replace("~0", "~")


def json_pointer_get(doc: Any, pointer: str) -> Any:
    """Resolve a JSON Pointer fragment ("" means the whole document)."""
    if not pointer:
        return doc
    if not pointer.startswith("/"):
        raise KeyError(f"unsupported JSON pointer '{pointer}'")

    node = doc
    for raw_token in pointer[1:].split("/"):
        token = _decode_pointer_token(raw_token)
        if isinstance(node, list):
            try:
                node = node[int(token)]
            except (ValueError, IndexError) as e:
                raise KeyError(f"'{token}' is not a valid list index") from e
        elif isinstance(node, dict):
            key = mapping_key(node, token)
            if key not in node:
                raise KeyError(f"key '{token}' not found")
            node = node[key]
        else:
            raise KeyError(f"cannot descend into a scalar at '{token}'")
    return node


class Bundler:
    """Inlines references for documents of one collection."""

    def __init__(self, root: Path, documents: Mapping[str, Document]):
        self.root = root
        self.documents = documents
        self._disk_cache: Dict[str, Any] = {}
        self._cycle_warnings: Set[RefKey] = set()

    def _load(self, relative_path: str) -> Any:
        document = self.documents.get(relative_path)
        if document is not None:
            return document.data
        if relative_path not in self._disk_cache:
            self._disk_cache[relative_path] = load_yaml(self.root / relative_path)
        return self._disk_cache[relative_path]

    def bundle(self, relative_path: str) -> Tuple[Any, List[str]]:
        """Return a fully dereferenced copy of a document.

        Returns:
            Tuple of (dereferenced document, warnings)
        """
        warnings: List[str] = []
        data = copy.deepcopy(self._load(relative_path))
        return self._inline(data, relative_path, (), warnings), warnings

    def _inline(
        self,
        node: Any,
        base_file: str,
        stack: Tuple[RefKey, ...],
        warnings: List[str],
    ) -> Any:
        if isinstance(node, list):
            return [self._inline(item, base_file, stack, warnings) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get("$ref")
        if not isinstance(ref, str) or _looks_like_url(ref):
            return {
                key: self._inline(value, base_file, stack, warnings)
                for key, value in node.items()
            }

        path_part, fragment = split_ref(ref)
        if path_part:
            target_file = posixpath.normpath(
                posixpath.join(posixpath.dirname(base_file), path_part)
            )
        else:
            target_file = base_file

        key = (target_file, fragment)
        if key in stack:
            if key not in self._cycle_warnings:
                self._cycle_warnings.add(key)
                warnings.append(f"Circular $ref {ref} in {base_file} left in place")
            return node

        try:
            target = json_pointer_get(self._load(target_file), fragment)
        except (KeyError, OSError, yaml.YAMLError) as e:
            warnings.append(f"Could not resolve $ref {ref} in {base_file}: {e}")
            return node

        resolved = self._inline(copy.deepcopy(target), target_file, stack + (key,), warnings)

        siblings = {k: v for k, v in node.items() if k != "$ref"}
        if siblings and isinstance(resolved, dict):
            resolved = dict(resolved)
            for sibling_key, value in siblings.items():
                resolved[sibling_key] = self._inline(value, base_file, stack, warnings)
        return resolved


def is_bundle_entrypoint(document: Document) -> bool:
    """Whether a document is a top-level OpenAPI spec worth bundling."""
    return isinstance(document.data, dict) and "openapi" in document.data


def is_examples_document(relative_path: str) -> bool:
    return posixpath.basename(relative_path).endswith(("-examples.yaml", "-examples.yml"))
