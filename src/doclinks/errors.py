"""Error taxonomy and the shared error reporter.

Every component reports handled failures to one ErrorReporter so that
resolution problems, duplicate titles, cache I/O failures and malformed
frontmatter can be inspected after the fact (`dl errors`, `/api/errors`).
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter, deque
from pathlib import Path
from typing import Any

from .models import ErrorCode, ErrorRecord, KeywordIdentifier

log = logging.getLogger(__name__)

# Most recent errors retained by the reporter
MAX_REPORTED_ERRORS = 100


class DoclinksError(Exception):
    """Base error carrying a code, a message and structured details."""

    code: ErrorCode = ErrorCode.RESOLUTION_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code
        self.timestamp = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(
            type=self.code,
            message=self.message,
            details=self.details,
            timestamp=self.timestamp,
        )


class ResolutionError(DoclinksError):
    """A keyword could not be matched to a document."""

    code = ErrorCode.RESOLUTION_ERROR

    def __init__(self, keyword: str, doc_type: str | None = None, message: str | None = None) -> None:
        self.keyword = keyword
        self.doc_type = doc_type
        super().__init__(
            message or f'Failed to resolve keyword "{keyword}"',
            {"keyword": keyword, "doc_type": doc_type},
        )


class DuplicateKeywordError(DoclinksError):
    """A keyword (title) is registered by more than one document."""

    code = ErrorCode.DUPLICATE_ERROR

    def __init__(
        self,
        keyword: str,
        occurrences: list[KeywordIdentifier],
        message: str | None = None,
    ) -> None:
        self.keyword = keyword
        self.occurrences = occurrences
        super().__init__(
            message or f'Keyword "{keyword}" is used by multiple documents',
            {
                "keyword": keyword,
                "occurrences": [o.model_dump() for o in occurrences],
            },
        )

    def get_suggestion(self) -> str:
        paths = ", ".join(o.path for o in self.occurrences)
        return (
            f'"{self.keyword}" is shared by: {paths}. '
            "Pass a doc type to resolve it unambiguously, or rename one of the documents."
        )


class CacheError(DoclinksError):
    """Reading or writing a cache tier failed."""

    code = ErrorCode.CACHE_ERROR


class ParseError(DoclinksError):
    """Frontmatter or content could not be parsed."""

    code = ErrorCode.PARSE_ERROR

    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{path}: {message}", {"path": str(path)})


class NotFoundError(DoclinksError):
    """A requested document or directory does not exist."""

    code = ErrorCode.NOT_FOUND


class ErrorReporter:
    """Bounded log of the most recent errors, with per-type counts."""

    def __init__(self, max_errors: int = MAX_REPORTED_ERRORS) -> None:
        self._errors: deque[ErrorRecord] = deque(maxlen=max_errors)

    @property
    def max_errors(self) -> int:
        return self._errors.maxlen or 0

    def report(self, error: Exception) -> ErrorRecord:
        """Record an error. Exceptions outside the taxonomy count as parse errors."""
        if isinstance(error, DoclinksError):
            record = error.to_record()
        else:
            record = ErrorRecord(
                type=ErrorCode.PARSE_ERROR,
                message=str(error),
                details={"exception": type(error).__name__},
            )

        self._errors.append(record)
        log.warning("%s: %s", record.type.value, record.message)
        return record

    def get_errors(self) -> list[ErrorRecord]:
        return list(self._errors)

    def get_statistics(self) -> dict[ErrorCode, int]:
        return dict(Counter(record.type for record in self._errors))

    def clear(self) -> None:
        self._errors.clear()

    def __len__(self) -> int:
        return len(self._errors)
