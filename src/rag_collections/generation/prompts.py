"""Prompt templates for collection summaries and collection chat.

Keeping prompts in one place makes them easy to audit, version, and A/B
test.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from rag_collections.retrieval.models import RetrievalResult

# Retrieval query used to sample a collection for its summary.
SUMMARY_QUERY = "summary overview content main topics"

# ── 1. Collection summary ─────────────────────────────────────────────

SUMMARY_SYSTEM = """\
You are an AI assistant that creates concise, informative summaries of \
documents. Create a summary that captures the main topics, key points, \
and overall theme of the content.
"""


def build_summary_prompt(passages: list[str], *, max_chars: int = 4000) -> list[BaseMessage]:
    """Build the summary prompt from retrieved passages.

    Passages are joined with blank lines and the combined content is cut
    at *max_chars*.
    """
    content = "\n\n".join(passages)[:max_chars]
    return [
        SystemMessage(content=SUMMARY_SYSTEM),
        HumanMessage(content=f"Please create a concise summary of the following content:\n\n{content}"),
    ]


# ── 2. Collection chat ────────────────────────────────────────────────

CHAT_SYSTEM = """\
You are an AI assistant that answers questions based on the provided \
context from documents. Your task is to provide accurate, helpful answers \
using only the information available in the context.

Guidelines:
- Answer based solely on the provided context
- If the context doesn't contain enough information to answer the question, say so
- Be concise but thorough
- Use direct quotes when appropriate
- Maintain the conversation flow by considering previous messages
"""


def _format_results_for_prompt(results: list[RetrievalResult]) -> str:
    return "\n\n".join(f"Document {i}:\n{r.content}" for i, r in enumerate(results, 1))


def _format_history(history: list[dict[str, str]]) -> str:
    lines = []
    for msg in history:
        speaker = "Human" if msg.get("role") == "user" else "Assistant"
        lines.append(f"{speaker}: {msg.get('content', '')}")
    return "\n".join(lines)


def build_chat_prompt(
    query: str,
    results: list[RetrievalResult],
    history: list[dict[str, str]] | None = None,
) -> list[BaseMessage]:
    """Build the grounded question-answering prompt.

    *history* is expected to be already trimmed to the recent window.
    """
    parts = [f"Context from documents:\n{_format_results_for_prompt(results)}"]
    if history:
        parts.append(f"Previous conversation:\n{_format_history(history)}")
    parts.append(f"Question: {query}")
    return [
        SystemMessage(content=CHAT_SYSTEM),
        HumanMessage(content="\n\n".join(parts)),
    ]
