"""Multi-criteria ranking of resolution candidates.

Each enabled criterion yields a raw score for a match; the combined score is
the weight-normalized sum over enabled criteria:

    combined = sum(w_c * raw_c) / sum(w_c)

Criteria:
    DOC_TYPE:   configured priority level of the match's doc type.
    RECENCY:    1 for a document modified now, falling linearly to 0 at 30 days.
    POPULARITY: manually assigned per-path score in [0, 1].
    RELEVANCE:  the match's incoming score.
    CUSTOM:     user preference for the doc type, plus a bonus per keyword,
                minus a penalty for short titles.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from .config import CUSTOM_KEYWORD_BONUS, CUSTOM_TITLE_LENGTH_SCALE, RECENCY_WINDOW_DAYS
from .models import DocumentMappingItem

SECONDS_PER_DAY = 24 * 60 * 60


class PriorityCriteria(str, Enum):
    DOC_TYPE = "docType"
    RECENCY = "recency"
    POPULARITY = "popularity"
    RELEVANCE = "relevance"
    CUSTOM = "custom"


DEFAULT_CRITERIA_WEIGHTS: dict[PriorityCriteria, float] = {
    PriorityCriteria.DOC_TYPE: 1.0,
    PriorityCriteria.RECENCY: 0.7,
    PriorityCriteria.POPULARITY: 0.5,
    PriorityCriteria.RELEVANCE: 0.8,
    PriorityCriteria.CUSTOM: 0.6,
}

DEFAULT_ENABLED_CRITERIA: tuple[PriorityCriteria, ...] = (PriorityCriteria.DOC_TYPE,)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class DocumentMatch:
    """A candidate document with its pre-ranking relevance score."""

    document: DocumentMappingItem
    score: float
    doc_type: str


class PriorityResolver:
    """Rank DocumentMatch lists by a weighted combination of criteria."""

    def __init__(
        self,
        document_priorities: Mapping[str, float] | None = None,
        default_priority: float = 0,
        enabled_criteria: list[PriorityCriteria] | None = None,
        criteria_weights: Mapping[PriorityCriteria, float] | None = None,
        user_preferences: Mapping[str, float] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default_priority = default_priority
        self._clock = clock
        self.priorities: dict[str, float] = dict(document_priorities or {})
        self.enabled_criteria: list[PriorityCriteria] = list(enabled_criteria or DEFAULT_ENABLED_CRITERIA)
        self.criteria_weights: dict[PriorityCriteria, float] = dict(DEFAULT_CRITERIA_WEIGHTS)
        for criteria, weight in (criteria_weights or {}).items():
            self.set_criteria_weight(criteria, weight)
        self.user_preferences: dict[str, float] = {}
        for doc_type, preference in (user_preferences or {}).items():
            self.set_user_preference(doc_type, preference)
        self.popularity_scores: dict[str, float] = {}

    # -- scoring --------------------------------------------------------

    def priority_level(self, doc_type: str) -> float:
        return self.priorities.get(doc_type, self.default_priority)

    def recency_score(self, document: DocumentMappingItem) -> float:
        if not document.last_modified:
            return 0.0
        age_days = (self._clock() - document.last_modified) / SECONDS_PER_DAY
        return max(0.0, 1 - age_days / RECENCY_WINDOW_DAYS)

    def popularity_score(self, document: DocumentMappingItem) -> float:
        return self.popularity_scores.get(document.path, 0.0)

    def custom_score(self, document: DocumentMappingItem) -> float:
        preference = self.user_preferences.get(document.doc_type, 0.0)
        keyword_bonus = len(document.keywords) * CUSTOM_KEYWORD_BONUS
        title_penalty = max(0.0, 1 - len(document.title) / CUSTOM_TITLE_LENGTH_SCALE)
        return preference + keyword_bonus - title_penalty

    def raw_score(self, criteria: PriorityCriteria, match: DocumentMatch) -> float:
        if criteria is PriorityCriteria.DOC_TYPE:
            return self.priority_level(match.doc_type)
        if criteria is PriorityCriteria.RECENCY:
            return self.recency_score(match.document)
        if criteria is PriorityCriteria.POPULARITY:
            return self.popularity_score(match.document)
        if criteria is PriorityCriteria.RELEVANCE:
            return match.score
        return self.custom_score(match.document)

    def combined_score(self, match: DocumentMatch) -> float:
        total_score = 0.0
        total_weight = 0.0
        for criteria in self.enabled_criteria:
            weight = self.criteria_weights.get(criteria, 0.0)
            total_weight += weight
            total_score += weight * self.raw_score(criteria, match)
        return total_score / total_weight if total_weight > 0 else 0.0

    def sort_by_priority(self, matches: list[DocumentMatch]) -> list[DocumentMatch]:
        """Return matches by descending combined score, ties by incoming score.

        Returns a new list; the sort is stable, so fully tied matches keep
        their input order.
        """
        return sorted(matches, key=lambda m: (self.combined_score(m), m.score), reverse=True)

    # -- configuration --------------------------------------------------

    def set_priority(self, doc_type: str, priority_level: float) -> None:
        self.priorities[doc_type] = priority_level

    def set_popularity_score(self, path: str, score: float) -> None:
        self.popularity_scores[path] = _clamp(score, 0.0, 1.0)

    def set_user_preference(self, doc_type: str, preference: float) -> None:
        self.user_preferences[doc_type] = _clamp(preference, -1.0, 1.0)

    def set_enabled_criteria(self, criteria: list[PriorityCriteria]) -> None:
        self.enabled_criteria = [PriorityCriteria(c) for c in criteria]

    def set_criteria_weight(self, criteria: PriorityCriteria, weight: float) -> None:
        self.criteria_weights[PriorityCriteria(criteria)] = _clamp(weight, 0.0, 1.0)

    def reset_priorities(self) -> None:
        self.priorities.clear()

    def reset_all(self) -> None:
        self.priorities.clear()
        self.enabled_criteria = list(DEFAULT_ENABLED_CRITERIA)
        self.criteria_weights = dict(DEFAULT_CRITERIA_WEIGHTS)
        self.user_preferences.clear()
        self.popularity_scores.clear()
