"""Retrieval-augmented collection summaries with a templated fallback."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from rag_collections.errors import SummarizationFailure
from rag_collections.generation.prompts import SUMMARY_QUERY, build_summary_prompt
from rag_collections.models import SourceType

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from rag_collections.retrieval.retriever import CollectionRetriever

logger = logging.getLogger(__name__)

_FALLBACK_TEMPLATES = {
    SourceType.PDF: 'PDF document "{title}" with {count} section(s) indexed successfully.',
    SourceType.TEXT: 'Text content "{title}" with {count} section(s) indexed successfully.',
    SourceType.WEBSITE: 'Website content from "{title}" with {count} section(s) indexed successfully.',
}


def fallback_summary(source_type: SourceType, title: str, documents_count: int) -> str:
    """Deterministic description used whenever the model cannot be used."""
    return _FALLBACK_TEMPLATES[source_type].format(title=title or "untitled", count=documents_count)


class SummaryGenerator:
    """Describe a freshly indexed collection in a few sentences.

    Parameters
    ----------
    retriever:
        Retriever over the same stores the index engine wrote to, so the
        just-written chunks are visible.
    llm:
        LangChain chat model.
    k:
        Number of passages sampled from the collection.
    max_context_chars:
        Cap on the passage text handed to the model.
    timeout:
        Seconds allowed for retrieval plus completion.
    """

    def __init__(
        self,
        retriever: CollectionRetriever,
        llm: BaseChatModel,
        *,
        k: int = 10,
        max_context_chars: int = 4000,
        timeout: float = 60.0,
    ) -> None:
        self._retriever = retriever
        self._llm = llm
        self.k = k
        self.max_context_chars = max_context_chars
        self.timeout = timeout

    async def generate(self, collection_id: str) -> str:
        """Produce a model-written summary.

        Raises
        ------
        SummarizationFailure
            On timeout, provider error, or an empty / non-text completion.
        """
        try:
            return await asyncio.wait_for(self._generate(collection_id), timeout=self.timeout)
        except SummarizationFailure:
            raise
        except asyncio.TimeoutError as exc:
            raise SummarizationFailure(f"Summary timed out after {self.timeout:g}s") from exc
        except Exception as exc:
            raise SummarizationFailure(f"Summary provider failed: {exc}") from exc

    async def summarize(
        self,
        collection_id: str,
        *,
        source_type: SourceType,
        title: str,
        documents_count: int,
    ) -> str:
        """Like :meth:`generate`, but never raises: falls back to a template."""
        try:
            summary = await self.generate(collection_id)
            logger.info("Generated summary for %s (%d chars)", collection_id, len(summary))
            return summary
        except SummarizationFailure:
            logger.warning("Summary generation failed for %s, using fallback", collection_id, exc_info=True)
            return fallback_summary(source_type, title, documents_count)

    async def _generate(self, collection_id: str) -> str:
        results = await self._retriever.asearch(collection_id, SUMMARY_QUERY, k=self.k)
        if not results:
            raise SummarizationFailure(f"No passages retrieved from {collection_id!r}")
        prompt = build_summary_prompt([r.content for r in results], max_chars=self.max_context_chars)
        response = await self._llm.ainvoke(prompt)
        content = response.content
        if not isinstance(content, str) or not content.strip():
            raise SummarizationFailure("Summary provider returned an empty or malformed response")
        return content.strip()
