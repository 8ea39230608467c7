"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from rag_collections.config import Settings, settings
from rag_collections.retrieval.base import VectorStoreBase, sort_by_sequence

logger = logging.getLogger(__name__)


def _flatten_metadata(meta: dict[str, Any]) -> dict[str, Any]:
    """Chroma metadata values must be flat str/int/float/bool."""
    return {k: v for k, v in meta.items() if isinstance(v, (str, int, float, bool))}


def create_client(cfg: Settings = settings) -> Any:
    """Return an HTTP client when ``chroma_host`` is set, else an embedded one."""
    if cfg.chroma_host:
        logger.info("Using Chroma server at %s:%d", cfg.chroma_host, cfg.chroma_port)
        return chromadb.HttpClient(host=cfg.chroma_host, port=cfg.chroma_port)
    logger.info("Using embedded Chroma at %s", cfg.chroma_persist_directory)
    return chromadb.PersistentClient(path=cfg.chroma_persist_directory)


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed store for one collection.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection (a collection id from the namer).
    client:
        Any ``chromadb`` client (HTTP, persistent or ephemeral).
    distance_metric:
        ``cosine`` | ``l2`` | ``ip``; only used when the collection is created.
    """

    def __init__(
        self,
        collection_name: str,
        *,
        client: Any,
        distance_metric: str = "cosine",
    ) -> None:
        super().__init__(collection_name)
        self._client = client
        self._collection = client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": distance_metric},
        )

    # -- VectorStoreBase overrides --------------------------------------------

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        self._collection.upsert(
            ids=ids,
            embeddings=embeddings,
            documents=documents,
            metadatas=[_flatten_metadata(m) for m in metadatas],
        )

    def similarity_search(self, query_embedding: list[float], *, k: int = 5) -> list[dict[str, Any]]:
        n_results = min(k, self.count())
        if n_results == 0:
            return []

        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=n_results,
            include=["documents", "metadatas", "distances"],
        )

        hits: list[dict[str, Any]] = []
        ids = results.get("ids", [[]])[0]
        docs = results.get("documents", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]

        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            # Convert a distance into a 0-1 similarity score.
            score = 1.0 / (1.0 + dist)
            hits.append(
                {
                    "id": doc_id,
                    "content": content or "",
                    "score": score,
                    "metadata": meta or {},
                }
            )
        return hits

    def get_all(self) -> list[dict[str, Any]]:
        results = self._collection.get(include=["documents", "metadatas"])
        records = [
            {"id": doc_id, "content": content or "", "score": None, "metadata": meta or {}}
            for doc_id, content, meta in zip(
                results.get("ids", []),
                results.get("documents") or [],
                results.get("metadatas") or [],
            )
        ]
        return sort_by_sequence(records)

    def count(self) -> int:
        return self._collection.count()

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def delete_collection(self) -> None:
        self._client.delete_collection(name=self.collection_name)


class ChromaStoreFactory:
    """Build :class:`ChromaVectorStore` handles that share one client.

    The client is created lazily on first use so that constructing the
    factory (e.g. at app start-up) does not touch the network.
    """

    def __init__(self, cfg: Settings = settings, *, client: Any | None = None) -> None:
        self._cfg = cfg
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = create_client(self._cfg)
        return self._client

    def __call__(self, collection_name: str) -> ChromaVectorStore:
        return ChromaVectorStore(
            collection_name,
            client=self.client,
            distance_metric=self._cfg.distance_metric,
        )
