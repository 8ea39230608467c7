"""Domain models shared by every pipeline stage."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Kind of content a collection was built from.  Fixed at creation."""

    PDF = "pdf"
    TEXT = "text"
    WEBSITE = "website"


class IngestionStage(str, Enum):
    """States an ingestion request moves through, in order."""

    VALIDATING = "validating"
    EXTRACTING = "extracting"
    NAMING = "naming"
    INDEXING = "indexing"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"


class Collection(BaseModel):
    """A named, independently queryable set of embedded passages.

    Attributes
    ----------
    id:
        Identifier produced by :class:`~rag_collections.ingestion.naming.CollectionNamer`.
        Treated as an opaque token by every downstream consumer.
    source_type:
        Which source variant the collection was built from.
    title:
        Human title the slug inside ``id`` was derived from.
    created_at:
        UTC creation time; its millisecond value is embedded in ``id``.
    """

    id: str
    source_type: SourceType
    title: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ExtractedDocument(BaseModel):
    """Normalised output of the source extractor."""

    text: str
    title: str
    provenance: dict[str, Any] = Field(default_factory=dict)


class Chunk(BaseModel):
    """One ordered passage of a collection.

    Attributes
    ----------
    collection_id:
        Owning collection.
    sequence_index:
        Position within the source, unique per collection.
    text:
        Non-empty passage text.
    embedding:
        Vector filled in by the index engine; empty until then.
    source_metadata:
        Provenance (filename, source URL, title, …).
    """

    collection_id: str
    sequence_index: int = Field(ge=0)
    text: str = Field(min_length=1)
    embedding: list[float] = Field(default_factory=list)
    source_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def chunk_id(self) -> str:
        """Deterministic upsert key — ``"<collection>:<sequence>"``."""
        return f"{self.collection_id}:{self.sequence_index}"


class ErrorDetail(BaseModel):
    """Caller-visible description of a failed request."""

    reason: str
    message: str
    status_code: int = 500


class IngestionResult(BaseModel):
    """Output value of one ingestion request.

    ``summary`` is best-effort, but always a non-empty string when
    ``success`` is true.
    """

    success: bool
    stage: IngestionStage
    collection_id: str | None = None
    documents_count: int = 0
    summary: str | None = None
    name: str | None = None
    source_url: str | None = None
    error: ErrorDetail | None = None
    failed_at: IngestionStage | None = None
