"""
Retrieval — per-collection vector search with citations.

This module wraps the vector store behind a clean interface so that the
indexing and generation layers never need to know which DB is backing
them.

Public surface
--------------
- :class:`CollectionRetriever` — query one collection, with citations.
- :class:`VectorStoreBase` — abstract backend (subclass for Qdrant, etc.).
- :class:`ChromaVectorStore`, :class:`ChromaStoreFactory` — default Chroma backend.
- :class:`Citation`, :class:`RetrievalResult` — data models.
"""

from rag_collections.retrieval.base import StoreFactory, VectorStoreBase
from rag_collections.retrieval.models import Citation, RetrievalResult
from rag_collections.retrieval.retriever import CollectionRetriever

__all__ = [
    "ChromaStoreFactory",
    "ChromaVectorStore",
    "Citation",
    "CollectionRetriever",
    "RetrievalResult",
    "StoreFactory",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import the Chroma classes to avoid pulling in chromadb at import time."""
    if name in ("ChromaVectorStore", "ChromaStoreFactory"):
        from rag_collections.retrieval import chroma_store

        return getattr(chroma_store, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
