"""
Generation — LLM-backed collection summaries and collection chat.

Public API
----------
- :class:`SummaryGenerator` / :func:`fallback_summary` — describe a new collection.
- :class:`CollectionChat` — answer questions grounded in one collection.
- :func:`get_llm` — configured chat model (lazy, avoids importing OpenAI eagerly).
"""

from rag_collections.generation.chat import ChatAnswer, ChatMessage, ChatSource, CollectionChat
from rag_collections.generation.summary import SummaryGenerator, fallback_summary

__all__ = [
    "ChatAnswer",
    "ChatMessage",
    "ChatSource",
    "CollectionChat",
    "SummaryGenerator",
    "fallback_summary",
    "get_llm",
]


def __getattr__(name: str):  # noqa: ANN001
    if name == "get_llm":
        from rag_collections.generation.llm import get_llm

        return get_llm
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
