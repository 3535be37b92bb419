"""[[Keyword]] extraction and rewriting into inline link elements."""

from __future__ import annotations

import html
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Union

from ..models import ResolvedKeyword

# Pattern for [[Keyword]] syntax - captures content between double brackets
KEYWORD_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")

# Name of the inline element emitted for each reference
KEYWORD_LINK_ELEMENT = "KeywordLink"


@dataclass(frozen=True)
class TextSegment:
    value: str


@dataclass(frozen=True)
class KeywordLink:
    """Inline element replacing one [[Keyword]] occurrence."""

    keyword: str
    is_valid: bool
    doc_type: str | None
    initial_data: str  # Serialized ResolvedKeyword

    def attributes(self) -> dict[str, Any]:
        return {
            "keyword": self.keyword,
            "isValid": self.is_valid,
            "docType": self.doc_type,
            "initialData": self.initial_data,
        }

    def render(self) -> str:
        """Inline MDX element, e.g. <KeywordLink keyword="React" isValid={true} ... />."""
        doc_type = "{null}" if self.doc_type is None else f'"{html.escape(self.doc_type)}"'
        return (
            f"<{KEYWORD_LINK_ELEMENT}"
            f' keyword="{html.escape(self.keyword)}"'
            f" isValid={{{str(self.is_valid).lower()}}}"
            f" docType={doc_type}"
            f' initialData="{html.escape(self.initial_data)}"'
            " />"
        )


Segment = Union[TextSegment, KeywordLink]


def extract_keywords(content: str) -> list[str]:
    """Return unique [[Keyword]] references in order of first appearance."""
    seen: set[str] = set()
    keywords: list[str] = []
    for match in KEYWORD_PATTERN.finditer(content):
        keyword = match.group(1).strip()
        if keyword and keyword not in seen:
            seen.add(keyword)
            keywords.append(keyword)
    return keywords


def build_keyword_link(keyword: str, resolved: ResolvedKeyword) -> KeywordLink:
    return KeywordLink(
        keyword=keyword,
        is_valid=resolved.ok and not resolved.is_ambiguous,
        doc_type=resolved.doc_type,
        initial_data=json.dumps(resolved.to_payload(), ensure_ascii=False),
    )


def link_keywords(
    content: str,
    resolve: Callable[[str], ResolvedKeyword],
) -> list[Segment]:
    """Split content into text segments and KeywordLink elements.

    Each distinct keyword is resolved once, even if referenced repeatedly.

    Args:
        content: Document body.
        resolve: Callable returning the ResolvedKeyword for a keyword.

    Returns:
        Segments in document order. Content without references yields a
        single TextSegment (or nothing for empty content).
    """
    segments: list[Segment] = []
    resolved: dict[str, KeywordLink] = {}
    last = 0

    for match in KEYWORD_PATTERN.finditer(content):
        keyword = match.group(1).strip()
        if not keyword:
            continue

        if match.start() > last:
            segments.append(TextSegment(content[last:match.start()]))

        link = resolved.get(keyword)
        if link is None:
            link = build_keyword_link(keyword, resolve(keyword))
            resolved[keyword] = link
        segments.append(link)
        last = match.end()

    if last < len(content):
        segments.append(TextSegment(content[last:]))

    return segments


def render_segments(segments: list[Segment]) -> str:
    """Join segments back into content, with each reference rendered inline."""
    return "".join(
        segment.value if isinstance(segment, TextSegment) else segment.render()
        for segment in segments
    )
