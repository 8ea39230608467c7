"""Admission policy — cheap threshold checks run before any expensive work."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rag_collections.config import Settings, settings
from rag_collections.errors import AdmissionRejected
from rag_collections.models import SourceType

logger = logging.getLogger(__name__)


def _format_bytes(size: int) -> str:
    mib = size / (1024 * 1024)
    return f"{mib:g}MB ({size} bytes)" if mib >= 1 else f"{size} bytes"


@dataclass(frozen=True)
class AdmissionPolicy:
    """Stateless size / length limits.

    Attributes
    ----------
    pdf_max_file_size:
        Maximum upload size in bytes for PDF sources.
    text_min_characters:
        Minimum stripped length of a text source (rejects near-empty input).
    text_max_characters:
        Maximum raw length of a text source.
    max_chunks:
        Per-source-type ceiling on the number of chunks sent for embedding.
    """

    pdf_max_file_size: int = 5 * 1024 * 1024
    text_min_characters: int = 10
    text_max_characters: int = 5000
    pdf_max_chunks: int = 500
    text_max_chunks: int = 100
    website_max_chunks: int = 200

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> AdmissionPolicy:
        return cls(
            pdf_max_file_size=cfg.pdf_max_file_size,
            text_min_characters=cfg.text_min_characters,
            text_max_characters=cfg.text_max_characters,
            pdf_max_chunks=cfg.pdf_max_chunks,
            text_max_chunks=cfg.text_max_chunks,
            website_max_chunks=cfg.website_max_chunks,
        )

    def check_admission(self, source_type: SourceType, size_or_length: int, *, stripped_length: int | None = None) -> None:
        """Raise :class:`AdmissionRejected` when the payload violates a limit.

        Parameters
        ----------
        source_type:
            Kind of source being admitted.  Websites are not size-checked.
        size_or_length:
            Byte size for files, character count for raw text.
        stripped_length:
            Length of the text after trimming; defaults to
            ``size_or_length``.  Only used for the minimum-length check.
        """
        if source_type is SourceType.PDF:
            if size_or_length > self.pdf_max_file_size:
                raise AdmissionRejected(
                    f"PDF file is too large ({size_or_length} bytes). "
                    f"Maximum size is {_format_bytes(self.pdf_max_file_size)}.",
                    reason="file_too_large",
                )
        elif source_type is SourceType.TEXT:
            effective = size_or_length if stripped_length is None else stripped_length
            if effective < self.text_min_characters:
                raise AdmissionRejected(
                    f"Text content is too short (minimum {self.text_min_characters} characters)",
                    reason="text_too_short",
                )
            if size_or_length > self.text_max_characters:
                raise AdmissionRejected(
                    f"Text content is too long ({size_or_length} characters). "
                    f"Maximum is {self.text_max_characters} characters.",
                    reason="text_too_long",
                )
        logger.debug("Admitted %s source (%d)", source_type.value, size_or_length)

    def check_chunk_budget(self, source_type: SourceType, count: int) -> None:
        """Refuse to embed more chunks than the per-type ceiling allows."""
        limit = {
            SourceType.PDF: self.pdf_max_chunks,
            SourceType.TEXT: self.text_max_chunks,
            SourceType.WEBSITE: self.website_max_chunks,
        }[source_type]
        if count > limit:
            raise AdmissionRejected(
                f"Content is too large to index ({count} sections). "
                f"Maximum is {limit} sections for {source_type.value} sources.",
                reason="too_many_chunks",
            )
