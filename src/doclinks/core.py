"""Core service for doclinks.

DocLinks ties the components together for one content root. The CLI
(cli.py) and the HTTP API (webapp/api.py) both drive this class.

Design principles:
- One explicit service instance owns every cache, the error reporter and
  the optional watcher. Nothing is initialized at import time.
- resolve_keyword / link_keywords are async so they can be awaited from the
  API and wrapped by the CLI. Everything underneath is synchronous.
- Cached values are plain JSON data and re-validated on read.
"""

from __future__ import annotations

import hashlib
import logging
import time
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from .cache import CacheManager
from .config import (
    SIMILAR_DESCRIPTION_SCORE,
    SIMILAR_DOCUMENT_LIMIT,
    SIMILAR_PATH_SCORE,
    SIMILAR_TITLE_SCORE,
    SiteConfig,
    get_cache_config,
    load_site_config,
)
from .errors import CacheError, ErrorReporter
from .indexer import build_document_mapping, build_keyword_index
from .models import (
    CacheConfig,
    DocumentMappingItem,
    DocumentNode,
    KeywordIndex,
    ResolvedKeyword,
    SimilarDocument,
)
from .parser.links import Segment
from .parser.links import link_keywords as rewrite_keywords
from .resolver import KeywordResolver, KeywordResolverConfig
from .tree import DocumentTreeBuilder, iter_nodes
from .watcher import ContentWatcher

log = logging.getLogger(__name__)


def _auth_suffix(is_authenticated: bool) -> str:
    return "auth" if is_authenticated else "noauth"


def content_root_id(content_root: Path) -> str:
    """Short stable id for a content root; roots may share one cache directory."""
    return hashlib.sha256(str(Path(content_root).resolve()).encode("utf-8")).hexdigest()[:12]


def keyword_index_cache_key(content_root: Path, is_authenticated: bool) -> str:
    return f"keyword-index:{content_root_id(content_root)}:{_auth_suffix(is_authenticated)}"


def document_mapping_cache_key(content_root: Path, is_authenticated: bool) -> str:
    return f"document-mapping:{content_root_id(content_root)}:{_auth_suffix(is_authenticated)}"


def resolver_config_from_site(site: SiteConfig) -> KeywordResolverConfig:
    """Resolver settings from a .doclinks.yaml file."""
    return KeywordResolverConfig(
        base_path=site.base_path,
        aliases=list(site.aliases),
        enable_context_matching=site.enable_context_matching,
        enable_priority_matching=site.enable_priority_matching,
        enable_related_keywords=site.enable_related_keywords,
        max_related_keywords=site.max_related_keywords,
        resolve_strategy=site.resolve_strategy,  # type: ignore[arg-type]
        document_priorities=dict(site.doc_type_priorities),
    )


class DocLinks:
    """Document tree, keyword index and keyword resolution for a content root.

    Usage:
        with DocLinks(Path("contents")) as docs:
            result = await docs.resolve_keyword("React", context="/docs/guides")
    """

    def __init__(
        self,
        content_root: Path,
        cache_config: CacheConfig | None = None,
        cache_dir: Path | None = None,
        resolver_config: KeywordResolverConfig | None = None,
        reporter: ErrorReporter | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.content_root = Path(content_root)
        self.reporter = reporter if reporter is not None else ErrorReporter()
        self.cache_config = cache_config or get_cache_config()
        self.cache = CacheManager(self.cache_config, cache_dir=cache_dir, reporter=self.reporter, clock=clock)
        self.tree_builder = DocumentTreeBuilder(self.content_root, reporter=self.reporter)
        self.site_config = load_site_config(self.content_root)
        self.resolver = KeywordResolver(
            [],
            resolver_config or resolver_config_from_site(self.site_config),
            reporter=self.reporter,
        )
        self._watcher: ContentWatcher | None = None
        if self.cache_config.enable_file_watcher:
            self._watcher = ContentWatcher(self.content_root, lambda _files: self.invalidate())

    # ─────────────────────────────────────────────────────────────────────────
    # Tree and index
    # ─────────────────────────────────────────────────────────────────────────

    def get_doc_tree(self, subpath: str = "", is_authenticated: bool = False) -> list[DocumentNode]:
        return self.tree_builder.build(subpath, is_authenticated)

    def get_keyword_index(self, is_authenticated: bool = False) -> KeywordIndex:
        """Keyword index for the whole content root, cached per auth state."""
        key = keyword_index_cache_key(self.content_root, is_authenticated)
        cached = self.cache.get(key)
        if cached is not None:
            try:
                return KeywordIndex.model_validate(cached)
            except ValidationError as e:
                self.reporter.report(CacheError(f"Discarding malformed cache entry {key}: {e}"))
                self.cache.delete(key)

        index = build_keyword_index(self.get_doc_tree(is_authenticated=is_authenticated))
        if index.duplicates:
            log.debug("Found %d duplicate titles", len(index.duplicates))
        self.cache.set(key, index.model_dump(mode="json"))
        return index

    def get_document_mapping(self, is_authenticated: bool = False) -> list[DocumentMappingItem]:
        key = document_mapping_cache_key(self.content_root, is_authenticated)
        cached = self.cache.get(key)
        if cached is not None:
            try:
                return [DocumentMappingItem.model_validate(item) for item in cached]
            except (TypeError, ValidationError) as e:
                self.reporter.report(CacheError(f"Discarding malformed cache entry {key}: {e}"))
                self.cache.delete(key)

        mapping = build_document_mapping(self.get_doc_tree(is_authenticated=is_authenticated))
        self.cache.set(key, [item.model_dump(mode="json") for item in mapping])
        return mapping

    # ─────────────────────────────────────────────────────────────────────────
    # Resolution
    # ─────────────────────────────────────────────────────────────────────────

    def _prepare_resolver(self, is_authenticated: bool) -> KeywordResolver:
        self.resolver.set_documents(
            self.get_document_mapping(is_authenticated),
            self.get_keyword_index(is_authenticated),
        )
        return self.resolver

    async def resolve_keyword(
        self,
        keyword: str,
        doc_type: str | None = None,
        context: str | None = None,
        is_authenticated: bool = False,
    ) -> ResolvedKeyword:
        """Resolve a [[Keyword]] reference.

        Args:
            keyword: Keyword text.
            doc_type: Restrict candidates to this doc type.
            context: Reader's current location, used for ranking.
            is_authenticated: Include draft and private documents.

        Returns:
            ResolvedKeyword with either `mapping` or `error` set. Logical
            failures never raise.
        """
        resolver = self._prepare_resolver(is_authenticated)
        return resolver.resolve_keyword(keyword, doc_type=doc_type, context=context)

    async def link_keywords(
        self,
        content: str,
        doc_type: str | None = None,
        context: str | None = None,
        is_authenticated: bool = False,
    ) -> list[Segment]:
        """Split document content into text and KeywordLink segments."""
        resolver = self._prepare_resolver(is_authenticated)
        return rewrite_keywords(
            content,
            lambda keyword: resolver.resolve_keyword(keyword, doc_type=doc_type, context=context),
        )

    def find_similar_documents(
        self,
        term: str,
        limit: int = SIMILAR_DOCUMENT_LIMIT,
        is_authenticated: bool = False,
    ) -> list[SimilarDocument]:
        """Rank documents against a free-text term (title, description, path)."""
        needle = term.strip().lower()
        if not needle:
            return []

        scored: list[SimilarDocument] = []
        for doc in self.get_document_mapping(is_authenticated):
            title = doc.title.lower()
            score = 0
            if needle in title or title in needle:
                score += SIMILAR_TITLE_SCORE
            if doc.description and needle in doc.description.lower():
                score += SIMILAR_DESCRIPTION_SCORE
            if needle in doc.path.lower():
                score += SIMILAR_PATH_SCORE
            if score > 0:
                scored.append(
                    SimilarDocument(
                        title=doc.title,
                        path=doc.path,
                        doc_type=doc.doc_type,
                        description=doc.description,
                        score=score,
                    )
                )

        scored.sort(key=lambda d: d.score, reverse=True)
        return scored[:limit]

    def count_documents(self, is_authenticated: bool = False) -> int:
        nodes = iter_nodes(self.get_doc_tree(is_authenticated=is_authenticated))
        return sum(1 for node in nodes if not node.is_folder)

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def invalidate(self) -> None:
        """Drop every cached tree, index and mapping."""
        self.tree_builder.invalidate()
        self.cache.clear()
        log.debug("Invalidated caches for %s", self.content_root)

    def start(self) -> None:
        """Start background work: periodic cache clear and the content watcher."""
        self.cache.start()
        if self._watcher is not None:
            self._watcher.start()

    def close(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
        self.cache.close()

    @property
    def watcher(self) -> ContentWatcher | None:
        return self._watcher

    def __enter__(self) -> DocLinks:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
