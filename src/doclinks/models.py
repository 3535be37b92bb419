"""Pydantic models for documentation indexing and keyword resolution."""

from __future__ import annotations

import datetime as dt
import time
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DocStatus = Literal["published", "draft", "private"]

# Statuses hidden from anonymous readers
HIDDEN_STATUSES = frozenset({"draft", "private"})


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class DocFrontmatter(BaseModel):
    """Frontmatter of a content document. Unknown fields pass through."""

    model_config = ConfigDict(extra="allow")

    title: str = Field(min_length=1)
    description: str | None = None
    date: dt.date | dt.datetime | str | None = None
    status: DocStatus = "published"
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    order: int | float | None = None
    keywords: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value


class FolderMetadata(BaseModel):
    """Folder-level metadata from index.json or index.mdx."""

    model_config = ConfigDict(extra="allow")

    title: str | None = None
    description: str | None = None
    order: int | float | None = None
    status: DocStatus = "published"


class DocumentNode(BaseModel):
    """A node of the navigable document tree."""

    title: str
    slug: str  # POSIX path relative to the tree root, without extension
    description: str | None = None
    order: int | float = 0
    status: DocStatus = "published"
    keywords: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    date: str | None = None  # Frontmatter date, ISO formatted
    last_modified: float | None = None  # Epoch seconds
    is_folder: bool = False
    extra: dict[str, Any] = Field(default_factory=dict)  # Pass-through frontmatter
    children: list[DocumentNode] = Field(default_factory=list)


class KeywordIdentifier(BaseModel):
    """A document registered under a keyword. Immutable once indexed."""

    model_config = ConfigDict(frozen=True)

    title: str
    doc_type: str
    path: str
    last_modified: float | None = None


class KeywordIndexEntry(BaseModel):
    """All documents registered under one normalized keyword."""

    documents: list[KeywordIdentifier] = Field(default_factory=list)
    is_ambiguous: bool = False
    last_updated: float = Field(default_factory=time.time)

    @model_validator(mode="after")
    def _sync_ambiguity(self) -> KeywordIndexEntry:
        self.is_ambiguous = len(self.documents) > 1
        return self

    def has_path(self, path: str) -> bool:
        return any(doc.path == path for doc in self.documents)

    def add(self, identifier: KeywordIdentifier) -> bool:
        """Register a document. Returns False if its path is already present."""
        if self.has_path(identifier.path):
            return False
        self.documents.append(identifier)
        self.is_ambiguous = len(self.documents) > 1
        self.last_updated = time.time()
        return True


class DuplicateTitle(BaseModel):
    """Diagnostic for a title shared by more than one document."""

    title: str
    occurrences: list[KeywordIdentifier]
    severity: Literal["warning", "error"] = "warning"
    suggestion: str = ""


class KeywordIndex(BaseModel):
    """Keyword -> documents index plus duplicate-title diagnostics."""

    index: dict[str, KeywordIndexEntry] = Field(default_factory=dict)
    duplicates: list[DuplicateTitle] = Field(default_factory=list)

    def get(self, keyword: str) -> KeywordIndexEntry | None:
        return self.index.get(keyword.strip().lower())

    def keywords(self) -> list[str]:
        return list(self.index)


class DocumentMappingItem(BaseModel):
    """A resolvable document, as seen by the keyword resolver."""

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)

    title: str
    path: str
    slug: str
    doc_type: str
    description: str | None = None
    keywords: list[str] = Field(default_factory=list)
    last_modified: float | None = None


class ResolvedKeyword(BaseModel):
    """Outcome of resolving a [[Keyword]] reference.

    Exactly one of `mapping` (success) or `error` (failure) is set.
    """

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)

    keyword: str
    doc_type: str | None = None
    mapping: DocumentMappingItem | None = None
    error: str | None = None
    is_ambiguous: bool = False
    alternatives: list[DocumentMappingItem] | None = None
    related_keywords: list[str] | None = None

    @model_validator(mode="after")
    def _mapping_xor_error(self) -> ResolvedKeyword:
        if (self.mapping is None) == (self.error is None):
            raise ValueError("exactly one of mapping or error must be set")
        return self

    @property
    def ok(self) -> bool:
        return self.mapping is not None

    @classmethod
    def failure(
        cls,
        keyword: str,
        error: str,
        doc_type: str | None = None,
        related_keywords: list[str] | None = None,
    ) -> ResolvedKeyword:
        return cls(
            keyword=keyword,
            doc_type=doc_type,
            error=error,
            is_ambiguous=False,
            related_keywords=related_keywords or None,
        )

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and unset optionals dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SimilarDocument(BaseModel):
    """A document scored against a free-text search term."""

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)

    title: str
    path: str
    doc_type: str
    description: str | None = None
    score: float = 0


class CacheConfig(BaseModel):
    """Cache behaviour. `ttl` and `update_interval` are in seconds; ttl 0 never expires."""

    model_config = ConfigDict(frozen=True)

    enable_file_watcher: bool = False
    update_interval: float = 0
    ttl: float = 0
    max_size: int = Field(default=1000, ge=1)
    persist_to_disk: bool = False
    version: str = "1.0.0"
    # Measure ttl from creation instead of the last access
    expire_from_creation: bool = False


class CacheMetrics(BaseModel):
    """Cache counters exposed by CacheManager.get_metrics()."""

    hits: int = 0
    misses: int = 0
    size: int = 0
    memory_usage: int = 0  # Approximate bytes held by the memory tier


class ErrorCode(str, Enum):
    """Error taxonomy shared by every component."""

    RESOLUTION_ERROR = "RESOLUTION_ERROR"
    DUPLICATE_ERROR = "DUPLICATE_ERROR"
    CACHE_ERROR = "CACHE_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    NOT_FOUND = "NOT_FOUND"


class ErrorRecord(BaseModel):
    """An error retained by the ErrorReporter."""

    type: ErrorCode
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)
