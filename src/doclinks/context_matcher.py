"""Location-aware scoring of candidate documents.

The "context" is the reader's current location, for example
"/docs/guides/setup". Documents whose path resembles it rank higher.
"""

from __future__ import annotations

from .config import (
    CONTEXT_FULL_MATCH_SCORE,
    CONTEXT_MIN_SEGMENT_LENGTH,
    CONTEXT_PARTIAL_CAP,
    CONTEXT_POSITION_SCORE,
    CONTEXT_SEGMENT_SCORE,
    DEFAULT_MAX_RELATED_KEYWORDS,
)
from .models import DocumentMappingItem


def _segments(path: str) -> list[str]:
    return [part for part in path.split("/") if part]


class ContextMatcher:
    """Score and sort documents by path similarity to a location."""

    def __init__(self, context: str = "") -> None:
        self.context = ""
        self.set_context(context)

    def set_context(self, context: str | None) -> None:
        self.context = (context or "").strip().lower()

    def context_score(self, path: str, context: str | None = None) -> float:
        """Similarity of `path` to the context, in [0, 1].

        1.0 is reserved for a context contained verbatim in the path. Partial
        matches earn 0.2 per context segment (longer than 2 chars) found
        anywhere in the path, plus 0.1 per segment equal to the path segment
        at the same position, capped at 0.9.
        """
        location = context.strip().lower() if context is not None else self.context
        if not location:
            return 0.0

        target = path.lower()
        if location in target:
            return CONTEXT_FULL_MATCH_SCORE

        context_parts = _segments(location)
        path_parts = _segments(target)

        score = 0.0
        for part in context_parts:
            if len(part) > CONTEXT_MIN_SEGMENT_LENGTH and part in target:
                score += CONTEXT_SEGMENT_SCORE

        for ctx_part, path_part in zip(context_parts, path_parts):
            if ctx_part == path_part:
                score += CONTEXT_POSITION_SCORE

        return min(score, CONTEXT_PARTIAL_CAP)

    def sort_by_context(
        self,
        documents: list[DocumentMappingItem],
        context: str | None = None,
    ) -> list[DocumentMappingItem]:
        """Return documents ordered by descending context score.

        The sort is stable, so equally scored documents keep their order.
        """
        return sorted(documents, key=lambda doc: self.context_score(doc.path, context), reverse=True)

    def extract_related_keywords(
        self,
        keyword: str,
        documents: list[DocumentMappingItem],
        limit: int = DEFAULT_MAX_RELATED_KEYWORDS,
    ) -> list[str]:
        """Keywords of `documents` other than `keyword`, first-seen order, deduplicated."""
        query = keyword.strip().lower()
        seen: set[str] = set()
        related: list[str] = []
        for doc in documents:
            for candidate in doc.keywords:
                normalized = candidate.strip().lower()
                if not normalized or normalized == query or normalized in seen:
                    continue
                seen.add(normalized)
                related.append(candidate)
                if len(related) >= limit:
                    return related
        return related
