"""Retrieved passages and the provenance that ties them to a collection."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Citation(BaseModel):
    """Provenance record linking a retrieved chunk back to its collection.

    Attributes
    ----------
    document_id:
        The vector-store ID of the chunk (``None`` when unknown).
    collection_id:
        Collection the chunk was retrieved from.
    source:
        Human-readable source locator — filename, URL or title.
    sequence_index:
        Ordinal position of the chunk within its source.
    score:
        Similarity score returned by the vector store.
    metadata:
        Metadata stored alongside the chunk.
    """

    document_id: str | None = None
    collection_id: str = ""
    source: str = "unknown"
    sequence_index: int | None = None
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def short_ref(self) -> str:
        """``[source§sequence_index]``, e.g. ``[handbook.pdf§3]``."""
        chunk = self.sequence_index if self.sequence_index is not None else "?"
        return f"[{self.source}§{chunk}]"


class RetrievalResult(BaseModel):
    """A single retrieved passage together with its citation."""

    content: str
    citation: Citation

    def preview(self, limit: int = 200) -> str:
        """Content truncated to *limit* characters, with an ellipsis if cut."""
        if len(self.content) <= limit:
            return self.content
        return self.content[:limit] + "..."
