"""Text chunking — bounded, ordered, overlapping passages."""

from __future__ import annotations

from typing import Any

from langchain_text_splitters import RecursiveCharacterTextSplitter

from rag_collections.models import Chunk

# Paragraph, line, sentence, word, then hard cut.
DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


def validate_chunking(max_chunk_chars: int, overlap_chars: int) -> None:
    if max_chunk_chars <= 0:
        raise ValueError(f"max_chunk_chars must be positive, got {max_chunk_chars}")
    if overlap_chars < 0:
        raise ValueError(f"overlap_chars must be >= 0, got {overlap_chars}")
    if overlap_chars >= max_chunk_chars:
        raise ValueError(
            f"overlap_chars ({overlap_chars}) must be < max_chunk_chars ({max_chunk_chars})"
        )


def chunk_text(
    text: str,
    max_chunk_chars: int = 1000,
    overlap_chars: int = 200,
) -> list[str]:
    """Split *text* into passages for embedding.

    Parameters
    ----------
    text:
        Normalised source text.
    max_chunk_chars:
        Maximum number of characters per passage.
    overlap_chars:
        Characters shared between consecutive passages.

    Returns
    -------
    list[str]
        Passages in order of appearance.  Non-blank input always yields at
        least one passage; blank input yields none.

    Raises
    ------
    ValueError
        When the overlap is not smaller than the passage size.
    """
    validate_chunking(max_chunk_chars, overlap_chars)
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=max_chunk_chars,
        chunk_overlap=overlap_chars,
        length_function=len,
        separators=DEFAULT_SEPARATORS,
    )
    return [p for p in splitter.split_text(text) if p.strip()]


def build_chunks(
    collection_id: str,
    text: str,
    source_metadata: dict[str, Any] | None = None,
    *,
    max_chunk_chars: int = 1000,
    overlap_chars: int = 200,
) -> list[Chunk]:
    """Chunk *text* and wrap each passage as a :class:`Chunk` of *collection_id*."""
    passages = chunk_text(text, max_chunk_chars, overlap_chars)
    meta = dict(source_metadata or {})
    return [
        Chunk(
            collection_id=collection_id,
            sequence_index=idx,
            text=passage,
            source_metadata={**meta, "chunk_count": len(passages)},
        )
        for idx, passage in enumerate(passages)
    ]
