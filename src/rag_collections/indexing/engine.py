"""Embedding & index engine.

Embeds every chunk of a collection with bounded concurrency, then upserts
all of them into the collection's store.  The stage is a barrier: nothing
is written until every embedding has arrived, and success is reported
only after every upsert batch has been acknowledged.

Upserts are keyed by :attr:`Chunk.chunk_id` (``"<collection>:<sequence>"``),
so re-running the same batch overwrites instead of duplicating.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from rag_collections.errors import IndexingFailure
from rag_collections.models import Chunk
from rag_collections.retrieval.base import StoreFactory

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


class IndexEngine:
    """Embed chunks and upsert them into a named collection.

    Parameters
    ----------
    embeddings:
        LangChain embeddings provider.
    store_factory:
        Returns the store for a collection name.
    max_concurrency:
        Maximum number of embedding requests in flight at once.
    embedding_timeout:
        Seconds allowed per embedding request.
    upsert_batch_size:
        Max records per upsert call.
    """

    def __init__(
        self,
        embeddings: Embeddings,
        store_factory: StoreFactory,
        *,
        max_concurrency: int = 4,
        embedding_timeout: float = 30.0,
        upsert_batch_size: int = 5000,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._embeddings = embeddings
        self._store_factory = store_factory
        self.max_concurrency = max_concurrency
        self.embedding_timeout = embedding_timeout
        self.upsert_batch_size = upsert_batch_size

    async def index_chunks(self, collection_id: str, chunks: list[Chunk]) -> int:
        """Embed and upsert *chunks*; return how many were indexed.

        Raises
        ------
        IndexingFailure
            If any embedding or upsert fails, times out, or the vectors do
            not share one dimension.  Outstanding embedding requests are
            cancelled first.
        """
        if not chunks:
            raise IndexingFailure(f"No chunks to index for collection {collection_id!r}")
        foreign = [c.sequence_index for c in chunks if c.collection_id != collection_id]
        if foreign:
            raise IndexingFailure(f"Chunks {foreign} do not belong to collection {collection_id!r}")

        t0 = time.monotonic()
        vectors = await self._embed_all(chunks)
        dims = {len(v) for v in vectors}
        if len(dims) != 1 or 0 in dims:
            raise IndexingFailure(f"Embedding provider returned inconsistent dimensions: {sorted(dims)}")
        (dim,) = dims

        embedded = [c.model_copy(update={"embedding": v}) for c, v in zip(chunks, vectors)]
        await asyncio.to_thread(self._upsert_all, collection_id, embedded)

        logger.info(
            "Indexed %d chunk(s) (dim=%d) into %s in %.2fs",
            len(embedded),
            dim,
            collection_id,
            time.monotonic() - t0,
        )
        return len(embedded)

    # -- internals ------------------------------------------------------------

    async def _embed_all(self, chunks: list[Chunk]) -> list[list[float]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def embed_with_limit(chunk: Chunk) -> list[float]:
            async with semaphore:
                try:
                    vectors = await asyncio.wait_for(
                        self._embeddings.aembed_documents([chunk.text]),
                        timeout=self.embedding_timeout,
                    )
                except asyncio.TimeoutError as exc:
                    raise IndexingFailure(
                        f"Embedding chunk {chunk.sequence_index} timed out after {self.embedding_timeout:g}s"
                    ) from exc
                except Exception as exc:
                    raise IndexingFailure(f"Embedding chunk {chunk.sequence_index} failed: {exc}") from exc
                if len(vectors) != 1:
                    raise IndexingFailure(
                        f"Embedding provider returned {len(vectors)} vectors for chunk {chunk.sequence_index}"
                    )
                return list(vectors[0])

        tasks = [asyncio.ensure_future(embed_with_limit(c)) for c in chunks]
        try:
            return list(await asyncio.gather(*tasks))
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Settle the siblings so none is left with an unretrieved exception.
            await asyncio.gather(*tasks, return_exceptions=True)

    def _upsert_all(self, collection_id: str, chunks: list[Chunk]) -> None:
        try:
            store = self._store_factory(collection_id)
            for start in range(0, len(chunks), self.upsert_batch_size):
                batch = chunks[start : start + self.upsert_batch_size]
                store.upsert(
                    ids=[c.chunk_id for c in batch],
                    embeddings=[c.embedding for c in batch],
                    documents=[c.text for c in batch],
                    metadatas=[_chunk_metadata(c) for c in batch],
                )
                logger.debug("  upserted %d-%d into %s", start, start + len(batch), collection_id)
        except Exception as exc:
            raise IndexingFailure(f"Upsert into {collection_id!r} failed: {exc}") from exc


def _chunk_metadata(chunk: Chunk) -> dict[str, Any]:
    return {
        **chunk.source_metadata,
        "collection_id": chunk.collection_id,
        "sequence_index": chunk.sequence_index,
        "char_count": len(chunk.text),
    }
