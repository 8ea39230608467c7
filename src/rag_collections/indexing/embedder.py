"""Embedding provider construction."""

from __future__ import annotations

from langchain_huggingface import HuggingFaceEmbeddings

from rag_collections.config import Settings, settings


def get_embedding_function(cfg: Settings = settings) -> HuggingFaceEmbeddings:
    """Return the configured sentence-transformer embedding function.

    Vectors are L2-normalised so that cosine distance in the store is
    meaningful.
    """
    return HuggingFaceEmbeddings(
        model_name=cfg.embedding_model,
        encode_kwargs={"normalize_embeddings": True},
    )
