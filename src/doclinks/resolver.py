"""Keyword resolution: map a [[Keyword]] reference to the best document.

Resolution pipeline for one call:

    1. Record usage of the keyword.
    2. Pick a strategy (strict / fuzzy, or adaptive between them).
    3. Gather candidates, filtered by doc type when one is given.
    4. No candidates -> failure result.
    5. Optionally re-order by similarity to the reader's location.
    6. Score candidates by rank position.
    7. Optionally re-rank with the PriorityResolver.
    8. Best match becomes the mapping, the rest are alternatives.
    9. Optionally attach related keywords (only with a context).
   10. Any exception is reported and returned as a failure result.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Literal, Mapping

from .config import (
    ADAPTIVE_STRICT_MAX_LENGTH,
    ADAPTIVE_STRICT_USAGE_THRESHOLD,
    DEFAULT_MAX_RELATED_KEYWORDS,
    KEYWORD_USAGE_MAX_KEYS,
    SIMILAR_KEYWORD_LIMIT,
)
from .context_matcher import ContextMatcher
from .errors import ErrorReporter, ResolutionError
from .indexer import find_similar_keywords, normalize_keyword
from .models import DocumentMappingItem, KeywordIndex, ResolvedKeyword
from .paths import AliasResolver, PathAlias, PathResolver
from .priority import DocumentMatch, PriorityCriteria, PriorityResolver

log = logging.getLogger(__name__)

ResolveStrategy = Literal["strict", "fuzzy", "adaptive"]
RESOLVE_STRATEGIES: tuple[str, ...] = ("strict", "fuzzy", "adaptive")

# Criteria enabled when priority matching is switched on
PRIORITY_MATCHING_CRITERIA = [
    PriorityCriteria.DOC_TYPE,
    PriorityCriteria.RELEVANCE,
    PriorityCriteria.RECENCY,
]


@dataclass
class KeywordResolverConfig:
    """Resolver behaviour. Priority fields are passed to the PriorityResolver."""

    base_path: str = "/"
    aliases: list[PathAlias | Mapping[str, str]] = field(default_factory=list)
    enable_context_matching: bool = False
    enable_priority_matching: bool = False
    enable_related_keywords: bool = True
    max_related_keywords: int = DEFAULT_MAX_RELATED_KEYWORDS
    resolve_strategy: ResolveStrategy = "adaptive"
    document_priorities: dict[str, float] = field(default_factory=dict)
    default_priority: float = 0
    enabled_criteria: list[PriorityCriteria] | None = None
    criteria_weights: dict[PriorityCriteria, float] | None = None
    user_preferences: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.resolve_strategy not in RESOLVE_STRATEGIES:
            raise ValueError(
                f"Unknown resolve strategy {self.resolve_strategy!r}; "
                f"expected one of {', '.join(RESOLVE_STRATEGIES)}"
            )
        if self.max_related_keywords <= 0:
            self.max_related_keywords = DEFAULT_MAX_RELATED_KEYWORDS


class KeywordUsageTracker:
    """Per-keyword usage counts, bounded to the most recently used keys."""

    def __init__(self, max_keys: int = KEYWORD_USAGE_MAX_KEYS) -> None:
        self.max_keys = max_keys
        self._counts: OrderedDict[str, int] = OrderedDict()

    def record(self, keyword: str) -> int:
        key = normalize_keyword(keyword)
        count = self._counts.pop(key, 0) + 1
        self._counts[key] = count
        while len(self._counts) > self.max_keys:
            self._counts.popitem(last=False)
        return count

    def count(self, keyword: str) -> int:
        return self._counts.get(normalize_keyword(keyword), 0)

    def clear(self) -> None:
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, keyword: object) -> bool:
        return isinstance(keyword, str) and normalize_keyword(keyword) in self._counts


def _exact_match(doc: DocumentMappingItem, needle: str) -> bool:
    if normalize_keyword(doc.title) == needle:
        return True
    return any(normalize_keyword(k) == needle for k in doc.keywords)


def _fuzzy_match(doc: DocumentMappingItem, needle: str) -> bool:
    haystacks = [normalize_keyword(doc.title), *(normalize_keyword(k) for k in doc.keywords)]
    return any(h and (needle in h or h in needle) for h in haystacks)


class KeywordResolver:
    """Resolve keywords against a document mapping."""

    def __init__(
        self,
        documents: list[DocumentMappingItem],
        config: KeywordResolverConfig | None = None,
        reporter: ErrorReporter | None = None,
        keyword_index: KeywordIndex | None = None,
    ) -> None:
        self.documents = list(documents)
        self.config = config or KeywordResolverConfig()
        self.reporter = reporter if reporter is not None else ErrorReporter()
        self.keyword_index = keyword_index
        self.resolve_strategy: ResolveStrategy = self.config.resolve_strategy
        self.usage = KeywordUsageTracker()
        self.context_matcher = ContextMatcher()
        self.path_resolver = PathResolver(self.config.base_path)
        self.alias_resolver = AliasResolver(self.config.aliases)
        self.priority_resolver = self._make_priority_resolver()

    def _make_priority_resolver(self) -> PriorityResolver:
        resolver = PriorityResolver(
            document_priorities=self.config.document_priorities,
            default_priority=self.config.default_priority,
            enabled_criteria=self.config.enabled_criteria,
            criteria_weights=self.config.criteria_weights,
            user_preferences=self.config.user_preferences,
        )
        if self.config.enable_priority_matching:
            resolver.set_enabled_criteria(PRIORITY_MATCHING_CRITERIA)
        return resolver

    # -- resolution -----------------------------------------------------

    def resolve_keyword(
        self,
        keyword: str,
        doc_type: str | None = None,
        context: str | None = None,
    ) -> ResolvedKeyword:
        """Resolve a keyword to its best matching document.

        Never raises: failures, including unexpected ones, come back as a
        ResolvedKeyword with `error` set.

        Args:
            keyword: Keyword as written inside [[...]].
            doc_type: Only consider documents of this doc type.
            context: Reader's current location, e.g. "/docs/guides/setup".
        """
        try:
            return self._resolve(keyword, doc_type, context)
        except Exception as e:
            error = ResolutionError(
                keyword,
                doc_type,
                f'Error while resolving keyword "{keyword}": {e}',
            )
            self.reporter.report(error)
            log.debug("Resolution of %r failed", keyword, exc_info=True)
            return ResolvedKeyword.failure(keyword, error.message, doc_type=doc_type)

    def _resolve(self, keyword: str, doc_type: str | None, context: str | None) -> ResolvedKeyword:
        needle = normalize_keyword(keyword)
        if not needle:
            raise ValueError("keyword must not be empty")

        self.usage.record(keyword)
        strategy = self.determine_strategy(keyword, context)
        candidates = self.find_candidates(keyword, doc_type, strategy)

        if not candidates:
            log.debug("No documents match %r (strategy=%s, doc_type=%s)", keyword, strategy, doc_type)
            return ResolvedKeyword.failure(
                keyword,
                self._not_found_message(keyword, doc_type),
                doc_type=doc_type,
                related_keywords=self._suggestions(keyword),
            )

        self.context_matcher.set_context(context)
        ranked = candidates
        if self.config.enable_context_matching and context:
            ranked = self.context_matcher.sort_by_context(candidates, context)

        matches = [
            DocumentMatch(document=doc, score=len(ranked) - rank, doc_type=doc.doc_type)
            for rank, doc in enumerate(ranked)
        ]
        if self.config.enable_priority_matching:
            matches = self.priority_resolver.sort_by_priority(matches)

        best, *rest = matches
        mapping = best.document.model_copy(update={"path": self.resolve_path(best.document.path)})
        alternatives = [m.document for m in rest]

        related: list[str] | None = None
        if self.config.enable_related_keywords and context:
            related = self.context_matcher.extract_related_keywords(
                keyword,
                candidates,
                self.config.max_related_keywords,
            )

        return ResolvedKeyword(
            keyword=keyword,
            doc_type=doc_type,
            mapping=mapping,
            is_ambiguous=bool(alternatives),
            alternatives=alternatives or None,
            related_keywords=related or None,
        )

    def determine_strategy(self, keyword: str, context: str | None = None) -> Literal["strict", "fuzzy"]:
        """Concrete strategy for a call. Adaptive prefers strict unless the
        keyword is long, a context is given, and the keyword is not frequent."""
        if self.resolve_strategy != "adaptive":
            return self.resolve_strategy  # type: ignore[return-value]

        if len(keyword.strip()) <= ADAPTIVE_STRICT_MAX_LENGTH:
            return "strict"
        if not context:
            return "strict"
        if self.usage.count(keyword) > ADAPTIVE_STRICT_USAGE_THRESHOLD:
            return "strict"
        return "fuzzy"

    def find_candidates(
        self,
        keyword: str,
        doc_type: str | None = None,
        strategy: Literal["strict", "fuzzy"] = "strict",
    ) -> list[DocumentMappingItem]:
        """Documents matching `keyword`, in mapping order.

        Strict returns exact title/keyword matches, falling back to the fuzzy
        set when there are none.
        """
        needle = normalize_keyword(keyword)
        pool = [doc for doc in self.documents if doc_type is None or doc.doc_type == doc_type]

        fuzzy = [doc for doc in pool if _fuzzy_match(doc, needle)]
        if strategy == "fuzzy":
            return fuzzy

        exact = [doc for doc in fuzzy if _exact_match(doc, needle)]
        return exact or fuzzy

    def resolve_path(self, path: str) -> str:
        return self.path_resolver.resolve_relative_path("", self.alias_resolver.resolve_alias(path))

    def _not_found_message(self, keyword: str, doc_type: str | None) -> str:
        if doc_type:
            return f'No document of type "{doc_type}" matches keyword "{keyword}"'
        return f'No document matches keyword "{keyword}"'

    def _suggestions(self, keyword: str) -> list[str] | None:
        if self.keyword_index is None:
            return None
        return find_similar_keywords(keyword, self.keyword_index, SIMILAR_KEYWORD_LIMIT) or None

    # -- configuration --------------------------------------------------

    def set_documents(self, documents: list[DocumentMappingItem], keyword_index: KeywordIndex | None = None) -> None:
        self.documents = list(documents)
        self.keyword_index = keyword_index

    def set_priority(self, doc_type: str, priority: float) -> None:
        self.priority_resolver.set_priority(doc_type, priority)

    def set_context(self, context: str | None) -> None:
        self.context_matcher.set_context(context)

    def set_resolve_strategy(self, strategy: ResolveStrategy) -> None:
        if strategy not in RESOLVE_STRATEGIES:
            raise ValueError(f"Unknown resolve strategy {strategy!r}")
        self.resolve_strategy = strategy

    def set_priority_criteria(self, criteria: list[PriorityCriteria]) -> None:
        self.priority_resolver.set_enabled_criteria(criteria)

    def set_criteria_weight(self, criteria: PriorityCriteria, weight: float) -> None:
        self.priority_resolver.set_criteria_weight(criteria, weight)

    def set_user_preference(self, doc_type: str, preference: float) -> None:
        self.priority_resolver.set_user_preference(doc_type, preference)

    def set_popularity_score(self, path: str, score: float) -> None:
        self.priority_resolver.set_popularity_score(path, score)

    def reset(self) -> None:
        """Restore priority settings, usage history and strategy to their defaults."""
        self.priority_resolver.reset_all()
        self.usage.clear()
        self.resolve_strategy = self.config.resolve_strategy
