"""Question answering grounded in a single collection.

Stateless: the caller passes recent history in and persists whatever it
wants afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from rag_collections.errors import GenerationFailure, ValidationError
from rag_collections.generation.prompts import build_chat_prompt

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from rag_collections.retrieval.retriever import CollectionRetriever

logger = logging.getLogger(__name__)

NO_ANSWER = "I apologize, but I couldn't generate a response."


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatSource(BaseModel):
    """A retrieved passage shown alongside the answer."""

    content: str
    reference: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float | None = None


class ChatAnswer(BaseModel):
    response: str
    sources: list[ChatSource] = Field(default_factory=list)


class CollectionChat:
    """Answer questions from one collection's passages.

    Parameters
    ----------
    retriever:
        Retriever used to pull the top-*k* passages for each question.
    llm:
        LangChain chat model.
    k:
        Passages per question.
    history_messages:
        How many trailing history messages are included in the prompt.
    timeout:
        Seconds allowed for retrieval plus completion.
    """

    def __init__(
        self,
        retriever: CollectionRetriever,
        llm: BaseChatModel,
        *,
        k: int = 5,
        history_messages: int = 6,
        timeout: float = 60.0,
    ) -> None:
        self._retriever = retriever
        self._llm = llm
        self.k = k
        self.history_messages = history_messages
        self.timeout = timeout

    async def answer(
        self,
        query: str,
        collection_id: str,
        history: list[ChatMessage] | None = None,
    ) -> ChatAnswer:
        if not query or not query.strip():
            raise ValidationError("User query must be a non-empty string", reason="missing_field")
        if not collection_id:
            raise ValidationError("Collection name is required", reason="missing_field")

        recent = [m.model_dump() for m in (history or [])[-self.history_messages :]] if self.history_messages else []
        try:
            return await asyncio.wait_for(
                self._answer(query.strip(), collection_id, recent),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationFailure(f"Chat response timed out after {self.timeout:g}s") from exc
        except Exception as exc:
            raise GenerationFailure(f"Failed to process chat request: {exc}") from exc

    async def _answer(self, query: str, collection_id: str, history: list[dict[str, str]]) -> ChatAnswer:
        results = await self._retriever.asearch(collection_id, query, k=self.k)
        logger.info("Answering from %d passage(s) of %s", len(results), collection_id)
        response = await self._llm.ainvoke(build_chat_prompt(query, results, history))
        text = response.content if isinstance(response.content, str) else ""
        return ChatAnswer(
            response=text.strip() or NO_ANSWER,
            sources=[
                ChatSource(
                    content=r.preview(200),
                    reference=r.citation.short_ref(),
                    metadata=r.citation.metadata,
                    score=r.citation.score,
                )
                for r in results
            ],
        )
