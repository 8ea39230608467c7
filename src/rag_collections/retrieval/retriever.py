"""Collection retriever — similarity search scoped to one collection.

Usage::

    retriever = CollectionRetriever(store_factory, embeddings)
    results = await retriever.asearch("text_demo_1718035200123", "main topics", k=5)
    for r in results:
        print(r.citation.short_ref(), r.preview(80))
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from rag_collections.retrieval.base import StoreFactory
from rag_collections.retrieval.models import Citation, RetrievalResult

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


class CollectionRetriever:
    """Embed a query and search one collection's store.

    Store calls are blocking (Chroma's ``HttpClient`` makes a network round
    trip per call) so they run in a worker thread, leaving the event loop
    free and letting callers' timeouts pre-empt a slow store.

    Parameters
    ----------
    store_factory:
        Returns the :class:`~rag_collections.retrieval.base.VectorStoreBase`
        for a collection name.  Must hand out stores that observe writes
        made through the same factory.
    embeddings:
        LangChain embeddings provider; must be the one used at indexing
        time so query and passage vectors share a space.
    score_threshold:
        Optional minimum similarity score; results below it are discarded.
        ``None`` keeps the top *k* whatever their scale, since stores only
        promise that a higher score means more similar.
    """

    def __init__(
        self,
        store_factory: StoreFactory,
        embeddings: Embeddings,
        *,
        score_threshold: float | None = None,
    ) -> None:
        self._store_factory = store_factory
        self._embeddings = embeddings
        self.score_threshold = score_threshold

    # -- public API -----------------------------------------------------------

    async def asearch(self, collection_id: str, query: str, *, k: int = 5) -> list[RetrievalResult]:
        """Return the top-*k* passages of *collection_id* for *query*."""
        embedding = await self._embeddings.aembed_query(query)
        raw_hits = await asyncio.to_thread(self._search, collection_id, embedding, k)
        logger.info("Retrieved %d passage(s) from %s", len(raw_hits), collection_id)
        return self._to_results(collection_id, raw_hits)

    async def list_chunks(self, collection_id: str) -> list[RetrievalResult]:
        """Every passage of *collection_id* in ascending sequence order."""
        raw = await asyncio.to_thread(self._get_all, collection_id)
        return self._to_results(collection_id, raw, apply_threshold=False)

    # -- internals ------------------------------------------------------------

    def _search(self, collection_id: str, embedding: list[float], k: int) -> list[dict[str, Any]]:
        store = self._store_factory(collection_id)
        return store.similarity_search(embedding, k=k)

    def _get_all(self, collection_id: str) -> list[dict[str, Any]]:
        return self._store_factory(collection_id).get_all()

    def _to_results(
        self,
        collection_id: str,
        raw_hits: list[dict[str, Any]],
        *,
        apply_threshold: bool = True,
    ) -> list[RetrievalResult]:
        threshold = self.score_threshold if apply_threshold else None
        results: list[RetrievalResult] = []
        for hit in raw_hits:
            score = hit.get("score")
            if threshold is not None and score is not None and score < threshold:
                continue

            meta = hit.get("metadata", {})
            citation = Citation(
                document_id=hit.get("id"),
                collection_id=collection_id,
                source=meta.get("filename") or meta.get("source_url") or meta.get("title") or "unknown",
                sequence_index=meta.get("sequence_index"),
                score=score,
                metadata=meta,
            )
            results.append(RetrievalResult(content=hit.get("content", ""), citation=citation))
        return results
