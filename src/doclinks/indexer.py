"""Keyword index construction over a document tree.

Every document is registered under its normalized title (trim + lowercase)
and under each of its frontmatter keywords. A keyword mapping to more than
one document is ambiguous; a title shared by several documents also yields a
DuplicateTitle diagnostic.

All functions here are pure: they return new structures and never mutate
their inputs.
"""

from __future__ import annotations

import difflib
from typing import Iterable, NamedTuple

from .config import DEFAULT_DOC_TYPE
from .errors import DuplicateKeywordError
from .models import (
    DocumentMappingItem,
    DocumentNode,
    DuplicateTitle,
    KeywordIdentifier,
    KeywordIndex,
    KeywordIndexEntry,
)
from .tree import iter_nodes


class IndexedKeyword(NamedTuple):
    """One (keyword, document) registration produced by tree traversal."""

    key: str
    identifier: KeywordIdentifier
    is_title: bool


def normalize_keyword(keyword: str) -> str:
    return keyword.strip().lower()


def doc_type_for(slug: str, is_folder: bool = False) -> str:
    """Doc type of a node: the top-level folder of its slug.

    Root-level documents get DEFAULT_DOC_TYPE; a top-level folder is its own type.
    """
    head, sep, _rest = slug.strip("/").partition("/")
    if head and (sep or is_folder):
        return head
    return DEFAULT_DOC_TYPE


def document_path(slug: str) -> str:
    return "/" + slug.strip("/")


def collect_identifiers(
    tree: list[DocumentNode],
    doc_type: str | None = None,
) -> list[IndexedKeyword]:
    """Flatten a tree into keyword registrations, in traversal order.

    Args:
        tree: Document tree (already visibility-filtered).
        doc_type: Doc type for every document. When None, it is derived from
            each node's slug (see doc_type_for).
    """
    registrations: list[IndexedKeyword] = []
    for node in iter_nodes(tree):
        title = node.title.strip() if node.title else ""
        if not title:
            continue

        identifier = KeywordIdentifier(
            title=node.title,
            doc_type=doc_type or doc_type_for(node.slug, node.is_folder),
            path=document_path(node.slug),
            last_modified=node.last_modified,
        )
        registrations.append(IndexedKeyword(normalize_keyword(title), identifier, True))

        for keyword in node.keywords:
            key = normalize_keyword(keyword)
            if key:
                registrations.append(IndexedKeyword(key, identifier, False))

    return registrations


def _index_registrations(registrations: Iterable[IndexedKeyword]) -> dict[str, KeywordIndexEntry]:
    index: dict[str, KeywordIndexEntry] = {}
    for registration in registrations:
        entry = index.get(registration.key)
        if entry is None:
            entry = KeywordIndexEntry()
            index[registration.key] = entry
        entry.add(registration.identifier)
    return index


def detect_duplicates(index: dict[str, KeywordIndexEntry]) -> list[DuplicateTitle]:
    """Report keys where a later document registered the same title.

    A key produces a diagnostic when any document after the first has a
    normalized title equal to the key. Keys that are ambiguous only through
    frontmatter keywords are not duplicates.
    """
    duplicates: list[DuplicateTitle] = []
    for key, entry in index.items():
        if len(entry.documents) < 2:
            continue
        if not any(normalize_keyword(doc.title) == key for doc in entry.documents[1:]):
            continue

        title = next(
            (doc.title for doc in entry.documents if normalize_keyword(doc.title) == key),
            key,
        )
        occurrences = list(entry.documents)
        duplicates.append(
            DuplicateTitle(
                title=title,
                occurrences=occurrences,
                severity="warning",
                suggestion=DuplicateKeywordError(title, occurrences).get_suggestion(),
            )
        )
    return duplicates


def build_keyword_index(tree: list[DocumentNode], doc_type: str | None = None) -> KeywordIndex:
    """Build the keyword index and duplicate diagnostics for a tree.

    Re-running on an unchanged tree yields the same index; a (keyword, path)
    pair is never registered twice.
    """
    index = _index_registrations(collect_identifiers(tree, doc_type))
    return KeywordIndex(index=index, duplicates=detect_duplicates(index))


def merge_keyword_indexes(*indexes: KeywordIndex) -> KeywordIndex:
    """Merge indexes in order, e.g. several content roots, and re-detect duplicates."""
    registrations = [
        IndexedKeyword(key, identifier, False)
        for keyword_index in indexes
        for key, entry in keyword_index.index.items()
        for identifier in entry.documents
    ]
    index = _index_registrations(registrations)
    return KeywordIndex(index=index, duplicates=detect_duplicates(index))


def find_similar_keywords(keyword: str, index: KeywordIndex, limit: int = 5) -> list[str]:
    """Index keys close to `keyword`, for "did you mean" hints.

    Substring matches come first, then typo-level matches by difflib ratio.
    """
    needle = normalize_keyword(keyword)
    if not needle:
        return []

    keys = index.keywords()
    matches = [key for key in keys if needle in key or key in needle]
    for key in difflib.get_close_matches(needle, keys, n=limit, cutoff=0.6):
        if key not in matches:
            matches.append(key)
    return matches[:limit]


def build_document_mapping(
    tree: list[DocumentNode],
    doc_type: str | None = None,
) -> list[DocumentMappingItem]:
    """Resolver candidates for every titled document (folders included)."""
    items: list[DocumentMappingItem] = []
    for node in iter_nodes(tree):
        if not node.title or not node.title.strip():
            continue
        items.append(
            DocumentMappingItem(
                title=node.title,
                path=document_path(node.slug),
                slug=node.slug,
                doc_type=doc_type or doc_type_for(node.slug, node.is_folder),
                description=node.description,
                keywords=list(node.keywords),
                last_modified=node.last_modified,
            )
        )
    return items
