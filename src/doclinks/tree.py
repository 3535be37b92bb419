"""Document tree construction from a content directory.

Layout conventions:
    - Entries starting with "." or "_" are never traversed.
    - A folder's metadata comes from index.json (preferred) or the
      frontmatter of index.mdx.
    - Every other *.mdx file is a document.
    - draft/private folders and documents are visible only to
      authenticated readers.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from .cache import CacheManager
from .config import (
    CONTENT_EXTENSION,
    DEFAULT_FILE_ORDER,
    DEFAULT_FOLDER_ORDER,
    FOLDER_INDEX_MDX,
    TREE_CACHE_MAX_SIZE,
    TREE_CACHE_TTL,
)
from .errors import ErrorReporter, ParseError
from .models import HIDDEN_STATUSES, CacheConfig, DocumentNode, FolderMetadata
from .parser.frontmatter import load_folder_metadata, parse_document, title_from_filename

log = logging.getLogger(__name__)

TREE_CACHE_CONFIG = CacheConfig(
    ttl=TREE_CACHE_TTL,
    max_size=TREE_CACHE_MAX_SIZE,
    persist_to_disk=False,
    expire_from_creation=True,
)


def tree_cache_key(subpath: str, is_authenticated: bool) -> str:
    return f"doctree:{subpath}:{'auth' if is_authenticated else 'noauth'}"


def _is_skipped(path: Path) -> bool:
    return path.name.startswith(".") or path.name.startswith("_")


def _file_mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def iter_nodes(nodes: list[DocumentNode]) -> Iterator[DocumentNode]:
    """Yield every node depth-first, parents before children."""
    for node in nodes:
        yield node
        yield from iter_nodes(node.children)


class DocumentTreeBuilder:
    """Build ordered, visibility-filtered document trees from a content root."""

    def __init__(
        self,
        content_root: Path,
        cache: CacheManager | None = None,
        reporter: ErrorReporter | None = None,
    ) -> None:
        self.content_root = Path(content_root)
        self.reporter = reporter if reporter is not None else ErrorReporter()
        self.cache = cache if cache is not None else CacheManager(TREE_CACHE_CONFIG, reporter=self.reporter)

    def build(self, subpath: str = "", is_authenticated: bool = False) -> list[DocumentNode]:
        """Return the document tree under `subpath`, cached per auth state.

        Slugs are relative to the content root, so a subtree's slugs keep
        their `subpath` prefix.
        """
        subpath = subpath.strip("/")
        key = tree_cache_key(subpath, is_authenticated)
        return self.cache.get_or_set(key, lambda: self._build_uncached(subpath, is_authenticated))

    def invalidate(self) -> None:
        self.cache.clear()

    def _build_uncached(self, subpath: str, is_authenticated: bool) -> list[DocumentNode]:
        start = self.content_root / subpath if subpath else self.content_root
        if not start.is_dir():
            log.warning("Content directory not found: %s", start)
            return []

        tree = self._build_dir(start, subpath, is_authenticated)
        log.debug("Built document tree for %s (%d top-level nodes)", start, len(tree))
        return tree

    def _build_dir(self, directory: Path, parent_slug: str, is_authenticated: bool) -> list[DocumentNode]:
        try:
            items = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            self.reporter.report(ParseError(directory, f"Cannot list directory: {e}"))
            return []

        nodes: list[DocumentNode] = []
        for item in items:
            if _is_skipped(item):
                continue

            slug = f"{parent_slug}/{item.name}" if parent_slug else item.name

            if item.is_dir():
                node = self._build_folder(item, slug, is_authenticated)
            elif item.suffix == CONTENT_EXTENSION and item.name != FOLDER_INDEX_MDX:
                node = self._build_document(item, slug[: -len(CONTENT_EXTENSION)], is_authenticated)
            else:
                continue

            if node is not None:
                nodes.append(node)

        # Stable: equal orders keep name order
        nodes.sort(key=lambda n: n.order)
        return nodes

    def _build_folder(self, directory: Path, slug: str, is_authenticated: bool) -> DocumentNode | None:
        metadata: FolderMetadata | None
        try:
            metadata = load_folder_metadata(directory)
        except ParseError as e:
            self.reporter.report(e)
            metadata = None

        if metadata is not None and metadata.status in HIDDEN_STATUSES and not is_authenticated:
            return None

        children = self._build_dir(directory, slug, is_authenticated)
        if not children and metadata is None:
            return None

        return DocumentNode(
            title=(metadata.title if metadata and metadata.title else directory.name),
            slug=slug,
            description=metadata.description if metadata else None,
            order=(
                metadata.order
                if metadata is not None and metadata.order is not None
                else DEFAULT_FOLDER_ORDER
            ),
            status=metadata.status if metadata else "published",
            is_folder=True,
            extra=dict(metadata.model_extra or {}) if metadata else {},
            children=children,
        )

    def _build_document(self, path: Path, slug: str, is_authenticated: bool) -> DocumentNode | None:
        mtime = _file_mtime(path)
        try:
            fm = parse_document(path)
        except ParseError as e:
            self.reporter.report(e)
            log.warning("Invalid frontmatter in %s, using filename as title", path)
            return DocumentNode(
                title=title_from_filename(path.name),
                slug=slug,
                order=DEFAULT_FILE_ORDER,
                last_modified=mtime,
            )

        if fm.status in HIDDEN_STATUSES and not is_authenticated:
            return None

        return DocumentNode(
            title=fm.title,
            slug=slug,
            description=fm.description,
            order=fm.order if fm.order is not None else DEFAULT_FILE_ORDER,
            status=fm.status,
            keywords=list(fm.keywords),
            tags=list(fm.tags),
            category=fm.category,
            date=fm.date.isoformat() if hasattr(fm.date, "isoformat") else fm.date,
            last_modified=mtime,
            extra=dict(fm.model_extra or {}),
        )
