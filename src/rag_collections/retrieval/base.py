"""Abstract base class for vector-store backends.

One :class:`VectorStoreBase` instance addresses exactly one collection.
Adding a new backend (Qdrant, pgvector …) only requires subclassing and
implementing the abstract methods; the index engine, summary generator
and collection chat are backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable


class VectorStoreBase(ABC):
    """Backend-agnostic, per-collection vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        """Insert or overwrite records keyed by *ids*.

        Must be idempotent: writing the same id twice leaves one record.
        Returns only once the backend has acknowledged the write.
        """
        ...

    @abstractmethod
    def similarity_search(self, query_embedding: list[float], *, k: int = 5) -> list[dict[str, Any]]:
        """Return the top-*k* results matching *query_embedding*.

        Each result dict **must** contain at least:

        * ``"id"`` – chunk identifier
        * ``"content"`` – the textual content
        * ``"score"`` – similarity score (higher = more similar)
        * ``"metadata"`` – associated metadata dict
        """
        ...

    @abstractmethod
    def get_all(self) -> list[dict[str, Any]]:
        """Return every record (same shape as search hits, ``score=None``),
        sorted by ascending ``sequence_index``."""
        ...

    @abstractmethod
    def count(self) -> int:
        """Number of records in the collection."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def delete_collection(self) -> None:
        """Drop the whole collection.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete_collection")


StoreFactory = Callable[[str], VectorStoreBase]
"""Callable returning the store for a collection name."""


def sort_by_sequence(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order records by ``metadata["sequence_index"]`` (missing sorts last)."""
    return sorted(
        records,
        key=lambda r: r.get("metadata", {}).get("sequence_index", float("inf")),
    )
