from __future__ import annotations

"""Document-relative references for textures, geometry blobs and sub-documents."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .errors import FormatError, SceneIOError

logger = logging.getLogger("hrsf.assets")

DOCUMENT_SUFFIX = ".json"


def document_path(filename: str | Path) -> Path:
    """Force the ``.json`` suffix on a document file name."""
    return Path(filename).with_suffix(DOCUMENT_SUFFIX)


class AssetPathResolver:
    """Translate between absolute locations and references relative to ``root``."""

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().absolute()

    def to_absolute(self, reference: str | Path) -> Path:
        path = Path(reference).expanduser()
        if path.is_absolute():
            return path
        return self.root / path

    def to_relative(self, path: str | Path) -> str:
        """Reference written into a document; relative inputs are kept as they are."""
        path = Path(path)
        if not path.is_absolute():
            return path.as_posix()
        try:
            return Path(os.path.relpath(str(path), str(self.root))).as_posix()
        except ValueError as exc:
            raise FormatError(f"could not form relative path for {path}: {exc}") from exc

    def document(self, reference: str | Path) -> Path:
        return document_path(self.to_absolute(reference))

    def child(self, reference: str | Path) -> "AssetPathResolver":
        """Resolver for a sub-document referenced from this one."""
        return AssetPathResolver(self.document(reference).parent)


def read_document(filename: str | Path) -> Any:
    path = document_path(filename).absolute()
    try:
        with open(path, "r", encoding="utf-8") as f:
            tree = json.load(f)
    except OSError as exc:
        raise SceneIOError(f"could not open {path}: {exc}", path) from exc
    except json.JSONDecodeError as exc:
        raise FormatError(f"invalid JSON: {exc}", filename=path) from exc
    logger.debug(f"Read document {path}")
    return tree


def write_document(tree: Any, filename: str | Path, *, indent: int = 3) -> Path:
    path = document_path(filename)
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(tree, f, indent=indent)
            f.write("\n")
    except OSError as exc:
        raise SceneIOError(f"could not open {path}: {exc}", path) from exc
    logger.debug(f"Wrote document {path}")
    return path
