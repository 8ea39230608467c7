"""Error taxonomy for the ingestion core.

Every caller-visible failure carries a stable machine-usable ``reason``
and a human-readable message.  The HTTP layer maps ``status_code``
directly onto the response.

Hierarchy
---------
- :class:`IngestionError`
    - :class:`ValidationError` (400) — bad request shape or limits
        - :class:`AdmissionRejected` — size / length policy violations
    - :class:`ExtractionFailure` (500) — unparseable PDF, unreachable site
    - :class:`IndexingFailure` (500) — embedding or store errors
    - :class:`SummarizationFailure` — recovered inside the summary generator
    - :class:`GenerationFailure` (500) — collection chat completion errors
"""

from __future__ import annotations

from typing import Any


class IngestionError(Exception):
    """Base class for all expected pipeline failures."""

    default_reason = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "reason": self.reason}


class ValidationError(IngestionError):
    """Missing or malformed field, unsupported media type, invalid URL."""

    default_reason = "validation_error"
    status_code = 400


class AdmissionRejected(ValidationError):
    """Input violates a configured size or length threshold."""


class ExtractionFailure(IngestionError):
    """A source could not be turned into plain text.

    ``kind`` is ``"parse_error"`` for binary formats and ``"fetch_error"``
    for network sources; it doubles as the ``reason``.
    """

    PARSE_ERROR = "parse_error"
    FETCH_ERROR = "fetch_error"

    def __init__(self, message: str, *, kind: str) -> None:
        super().__init__(message, reason=kind)
        self.kind = kind


class IndexingFailure(IngestionError):
    default_reason = "indexing_failed"


class SummarizationFailure(IngestionError):
    default_reason = "summarization_failed"


class GenerationFailure(IngestionError):
    default_reason = "generation_failed"
