"""FastAPI application exposing collection ingestion and chat as a REST API."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from rag_collections.config import get_settings
from rag_collections.errors import IngestionError
from rag_collections.generation.chat import ChatMessage, CollectionChat
from rag_collections.models import IngestionResult
from rag_collections.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


# ── Request / Response schemas ────────────────────────────────────────
class IngestionResponse(BaseModel):
    """Success payload shared by the three ingestion routes."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    name: str
    collection_name: str = Field(alias="collectionName")
    summary: str
    documents_count: int = Field(alias="documentsCount")
    source_url: str | None = Field(default=None, alias="sourceUrl")


class ChatRequest(BaseModel):
    """Question about one collection, with optional recent history."""

    model_config = ConfigDict(populate_by_name=True)

    user_query: str = Field(alias="userQuery")
    collection_name: str = Field(alias="collectionName")
    chat_history: list[ChatMessage] | None = Field(default=None, alias="chatHistory")


# ── Dependencies ──────────────────────────────────────────────────────
@lru_cache(maxsize=1)
def _providers() -> tuple[Any, Any]:
    """Embeddings and store factory shared by ingestion and chat."""
    from rag_collections.indexing.embedder import get_embedding_function
    from rag_collections.retrieval.chroma_store import ChromaStoreFactory

    cfg = get_settings()
    return get_embedding_function(cfg), ChromaStoreFactory(cfg)


@lru_cache(maxsize=1)
def get_pipeline() -> IngestionPipeline:
    embeddings, store_factory = _providers()
    return IngestionPipeline.from_settings(get_settings(), embeddings=embeddings, store_factory=store_factory)


@lru_cache(maxsize=1)
def get_chat() -> CollectionChat:
    from rag_collections.generation.llm import get_llm
    from rag_collections.retrieval.retriever import CollectionRetriever

    cfg = get_settings()
    embeddings, store_factory = _providers()
    return CollectionChat(
        CollectionRetriever(store_factory, embeddings),
        get_llm(cfg.chat_temperature, max_tokens=cfg.chat_max_tokens, cfg=cfg),
        k=cfg.chat_k,
        history_messages=cfg.chat_history_messages,
        timeout=cfg.llm_timeout,
    )


# ── Response shaping ──────────────────────────────────────────────────
def _error_response(message: str, reason: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message, "reason": reason}, status_code=status_code)


def _to_response(result: IngestionResult, message: str) -> JSONResponse:
    if not result.success:
        error = result.error
        return _error_response(error.message, error.reason, error.status_code)
    body = IngestionResponse(
        message=message,
        name=result.name or "",
        collection_name=result.collection_id,
        summary=result.summary,
        documents_count=result.documents_count,
        source_url=result.source_url,
    )
    return JSONResponse(body.model_dump(by_alias=True, exclude_none=True), status_code=200)


# ── App ───────────────────────────────────────────────────────────────
app = FastAPI(
    title="RAG Collections API",
    version="0.1.0",
    description="Ingest PDFs, text and web pages into summarised, queryable collections.",
)


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a 400, like every other shape violation."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    return _error_response(f"Invalid request: {field} {first.get('msg', 'is invalid')}", "validation_error", 400)


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.post("/rag/pdf")
async def ingest_pdf(
    pdf: UploadFile | None = File(default=None),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Index an uploaded PDF into a new collection."""
    if pdf is None:
        result = await pipeline.ingest_pdf(None, None, None)
    else:
        # Oversized uploads are refused on their declared size, unread.
        result = pipeline.precheck_pdf_size(pdf.size)
        if result is None:
            data = await pdf.read()
            result = await pipeline.ingest_pdf(pdf.filename, pdf.content_type, data)
    return _to_response(result, "PDF processed successfully")


@app.post("/rag/text")
async def ingest_text(
    text: str | None = Form(default=None),
    title: str | None = Form(default=None),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Index pasted text into a new collection."""
    result = await pipeline.ingest_text(text, title)
    return _to_response(result, "Text processed successfully")


@app.post("/rag/website")
async def ingest_website(
    website: str | None = Form(default=None),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Fetch a web page and index it into a new collection."""
    result = await pipeline.ingest_website(website)
    return _to_response(result, "Website processed successfully")


@app.post("/rag/chat")
async def chat(request: ChatRequest, collection_chat: CollectionChat = Depends(get_chat)) -> JSONResponse:
    """Answer a question from one collection's passages."""
    try:
        answer = await collection_chat.answer(request.user_query, request.collection_name, request.chat_history)
    except IngestionError as exc:
        logger.warning("Chat failed for %s: %s", request.collection_name, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)
    except Exception:
        logger.exception("Unexpected chat error for %s", request.collection_name)
        return _error_response("Failed to process chat request", "internal_error", 500)

    return JSONResponse(
        {
            "success": True,
            "message": "Chat response generated successfully",
            "response": answer.response,
            "sources": [s.model_dump() for s in answer.sources],
        },
        status_code=200,
    )
