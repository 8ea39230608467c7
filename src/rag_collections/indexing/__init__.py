"""
Indexing — embedding chunks and upserting them into a collection's store.
"""

from rag_collections.indexing.engine import IndexEngine

__all__ = ["IndexEngine", "get_embedding_function"]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import the HuggingFace factory to avoid loading torch at import time."""
    if name == "get_embedding_function":
        from rag_collections.indexing.embedder import get_embedding_function

        return get_embedding_function
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
