"""Source extractor — one normalised text blob per source.

:func:`extract` is the single dispatch point over the closed
:data:`~rag_collections.ingestion.sources.Source` union.  Blocking parsers
and HTTP fetches run in a worker thread so the event loop stays free.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from rag_collections.config import Settings, settings
from rag_collections.ingestion.loader import fetch_url, load_pdf_bytes
from rag_collections.ingestion.sources import PdfSource, Source, TextSource, WebsiteSource
from rag_collections.models import ExtractedDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceExtractor:
    """Convert any :data:`Source` into an :class:`ExtractedDocument`.

    Parameters
    ----------
    fetch_timeout:
        Per-request timeout (seconds) for website sources.
    user_agent:
        ``User-Agent`` header sent when fetching pages.
    website_max_characters:
        Extracted page text is truncated to this many characters.
    """

    fetch_timeout: float = 30.0
    user_agent: str = "Mozilla/5.0"
    website_max_characters: int | None = 10_000

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> SourceExtractor:
        return cls(
            fetch_timeout=cfg.fetch_timeout,
            user_agent=cfg.fetch_user_agent,
            website_max_characters=cfg.website_max_characters,
        )

    async def extract(self, source: Source) -> ExtractedDocument:
        if isinstance(source, PdfSource):
            text, provenance = await asyncio.to_thread(load_pdf_bytes, source.data, source.filename)
            return ExtractedDocument(text=text, title=source.title, provenance=provenance)

        if isinstance(source, TextSource):
            return ExtractedDocument(
                text=source.text.strip(),
                title=source.title,
                provenance={"source": "text_input"},
            )

        if isinstance(source, WebsiteSource):
            text, title, provenance = await asyncio.to_thread(
                fetch_url,
                source.url,
                timeout=self.fetch_timeout,
                user_agent=self.user_agent,
                max_chars=self.website_max_characters,
            )
            return ExtractedDocument(text=text, title=title, provenance=provenance)

        raise TypeError(f"Unsupported source type: {type(source).__name__}")


async def extract(source: Source) -> ExtractedDocument:
    """Extract *source* with the default, settings-driven extractor."""
    return await SourceExtractor.from_settings().extract(source)
