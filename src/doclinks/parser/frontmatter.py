"""Frontmatter parsing for .mdx documents and folder metadata files."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import frontmatter
from pydantic import BaseModel, ValidationError

from ..config import FOLDER_INDEX_JSON, FOLDER_INDEX_MDX
from ..errors import ParseError
from ..models import DocFrontmatter, FolderMetadata

_WORD_SEPARATORS = re.compile(r"[-_\s]+")


def title_from_filename(filename: str) -> str:
    """Derive a display title from a file name.

    "getting-started.mdx" -> "Getting Started"
    """
    stem = Path(filename).stem
    words = [w for w in _WORD_SEPARATORS.split(stem) if w]
    if not words:
        return stem
    return " ".join(w[:1].upper() + w[1:] for w in words)


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"]) or "(root)"
        lines.append(f"  - {loc}: {item['msg']}")
    return "Invalid frontmatter:\n" + "\n".join(lines)


def _load_metadata(path: Path) -> dict[str, Any]:
    try:
        post = frontmatter.load(str(path))
    except Exception as e:
        raise ParseError(path, f"Failed to parse frontmatter: {e}") from e
    return dict(post.metadata)


def _validate(path: Path, model: type[BaseModel], data: Any) -> Any:
    if not isinstance(data, dict):
        raise ParseError(path, "Metadata must be a mapping")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(path, _format_validation_error(e)) from e


def parse_document(path: Path) -> DocFrontmatter:
    """Parse and validate the frontmatter of a content document.

    Args:
        path: Path to the .mdx file.

    Returns:
        Validated frontmatter. Unknown fields are kept as extras.

    Raises:
        ParseError: If the file cannot be read, has no frontmatter, or the
            frontmatter fails validation (e.g. missing title).
    """
    if not path.is_file():
        raise ParseError(path, "File does not exist")

    metadata = _load_metadata(path)
    if not metadata:
        raise ParseError(path, "Missing frontmatter (YAML block required at start of file)")

    return _validate(path, DocFrontmatter, metadata)


def load_folder_metadata(directory: Path) -> FolderMetadata | None:
    """Load folder metadata from index.json (preferred) or index.mdx.

    Returns:
        FolderMetadata, or None when the folder has neither file.

    Raises:
        ParseError: If the metadata file exists but is malformed.
    """
    index_json = directory / FOLDER_INDEX_JSON
    if index_json.is_file():
        try:
            data = json.loads(index_json.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ParseError(index_json, f"Invalid JSON: {e}") from e
        return _validate(index_json, FolderMetadata, data)

    index_mdx = directory / FOLDER_INDEX_MDX
    if index_mdx.is_file():
        return _validate(index_mdx, FolderMetadata, _load_metadata(index_mdx))

    return None
