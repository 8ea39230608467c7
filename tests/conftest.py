"""Shared pytest configuration, fakes and fixtures.

No test talks to OpenAI, HuggingFace or a Chroma server: providers are
replaced by the in-memory fakes below.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings
from langchain_core.language_models import FakeListChatModel

from rag_collections.generation.summary import SummaryGenerator
from rag_collections.indexing.engine import IndexEngine
from rag_collections.ingestion.admission import AdmissionPolicy
from rag_collections.ingestion.extractor import SourceExtractor
from rag_collections.ingestion.naming import CollectionNamer
from rag_collections.pipeline import IngestionPipeline
from rag_collections.retrieval.base import VectorStoreBase, sort_by_sequence
from rag_collections.retrieval.retriever import CollectionRetriever


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake vector store ───────────────────────────────────────────────────


class FakeVectorStore(VectorStoreBase):
    """In-memory store keyed by record id; ranks by dot product."""

    def __init__(self, collection_name: str, *, fail_upsert: bool = False) -> None:
        super().__init__(collection_name)
        self.records: dict[str, dict[str, Any]] = {}
        self.upsert_calls = 0
        self.fail_upsert = fail_upsert
        self.deleted = False

    def upsert(self, ids, embeddings, documents, metadatas) -> None:  # noqa: ANN001
        self.upsert_calls += 1
        if self.fail_upsert:
            raise ConnectionError("store unavailable")
        for rid, emb, doc, meta in zip(ids, embeddings, documents, metadatas):
            self.records[rid] = {"id": rid, "embedding": emb, "content": doc, "metadata": dict(meta)}

    def similarity_search(self, query_embedding: list[float], *, k: int = 5) -> list[dict[str, Any]]:
        scored = [
            {**{key: r[key] for key in ("id", "content", "metadata")}, "score": _dot(query_embedding, r["embedding"])}
            for r in self.records.values()
        ]
        scored.sort(key=lambda h: h["score"], reverse=True)
        return scored[:k]

    def get_all(self) -> list[dict[str, Any]]:
        return sort_by_sequence(
            [{"id": r["id"], "content": r["content"], "score": None, "metadata": r["metadata"]} for r in self.records.values()]
        )

    def count(self) -> int:
        return len(self.records)

    def health_check(self) -> bool:
        return True

    def delete_collection(self) -> None:
        self.deleted = True
        self.records.clear()


def _dot(a: list[float], b: list[float]) -> float:
    return math.fsum(x * y for x, y in zip(a, b))


class FakeStoreFactory:
    """Hands out one :class:`FakeVectorStore` per collection name."""

    def __init__(self, *, fail_upsert: bool = False) -> None:
        self.stores: dict[str, FakeVectorStore] = {}
        self.fail_upsert = fail_upsert

    def __call__(self, collection_name: str) -> FakeVectorStore:
        if collection_name not in self.stores:
            self.stores[collection_name] = FakeVectorStore(collection_name, fail_upsert=self.fail_upsert)
        return self.stores[collection_name]


# ── Fake embeddings ─────────────────────────────────────────────────────


class RecordingEmbeddings(Embeddings):
    """Deterministic embeddings that record calls and peak concurrency.

    Parameters
    ----------
    size:
        Vector dimension.
    fail_on:
        Substring; embedding any text containing it raises ``RuntimeError``.
    delay:
        Seconds each async embedding call sleeps (to observe concurrency).
    """

    def __init__(self, size: int = 8, *, fail_on: str | None = None, delay: float = 0.0) -> None:
        self._inner = DeterministicFakeEmbedding(size=size)
        self.fail_on = fail_on
        self.delay = delay
        self.embedded_texts: list[str] = []
        self.query_texts: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.cancelled = 0

    def _check(self, texts: list[str]) -> None:
        for text in texts:
            if self.fail_on and self.fail_on in text:
                raise RuntimeError("embedding quota exceeded")

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self._check(texts)
        self.embedded_texts.extend(texts)
        return self._inner.embed_documents(texts)

    def embed_query(self, text: str) -> list[float]:
        self.query_texts.append(text)
        return self._inner.embed_query(text)

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self._check(texts)
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.embed_documents(texts)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1

    async def aembed_query(self, text: str) -> list[float]:
        return self.embed_query(text)


# ── Fake chat models ────────────────────────────────────────────────────


def failing_llm(exc: Exception | None = None) -> MagicMock:
    """A chat model whose every call raises."""
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=exc or RuntimeError("provider quota exceeded"))
    return llm


# ── Pipeline factory ────────────────────────────────────────────────────


def make_pipeline(
    *,
    llm: Any | None = None,
    embeddings: Embeddings | None = None,
    stores: FakeStoreFactory | None = None,
    admission: AdmissionPolicy | None = None,
    extractor: SourceExtractor | None = None,
    chunk_size: int = 100,
    chunk_overlap: int = 20,
) -> IngestionPipeline:
    """Wire a pipeline entirely from fakes."""
    embeddings = embeddings or RecordingEmbeddings()
    stores = stores if stores is not None else FakeStoreFactory()
    llm = llm or FakeListChatModel(responses=["A concise summary of the collection."])
    return IngestionPipeline(
        admission=admission or AdmissionPolicy(),
        extractor=extractor or SourceExtractor(),
        namer=CollectionNamer(),
        index_engine=IndexEngine(embeddings, stores, max_concurrency=2),
        summarizer=SummaryGenerator(CollectionRetriever(stores, embeddings), llm, k=5, timeout=5.0),
        store_factory=stores,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
    )


@pytest.fixture()
def stores() -> FakeStoreFactory:
    return FakeStoreFactory()


@pytest.fixture()
def embeddings() -> RecordingEmbeddings:
    return RecordingEmbeddings()
