"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` to a vLLM,
   Ollama or similar server exposing ``/v1/chat/completions``; the
   ``ChatOpenAI`` client works unchanged.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from rag_collections.config import Settings, settings

logger = logging.getLogger(__name__)


def get_llm(
    temperature: float = 0.0,
    *,
    max_tokens: int | None = None,
    cfg: Settings = settings,
) -> ChatOpenAI:
    """Return the configured chat model.

    Retries are disabled: a failed or timed-out completion is reported to
    the caller, which decides whether to fall back or surface the error.
    A dummy API key (``"EMPTY"``) is used against custom endpoints that
    do not require authentication.
    """
    kwargs: dict = {
        "model": cfg.llm_model_name,
        "temperature": temperature,
        "timeout": cfg.llm_timeout,
        "max_retries": 0,
    }
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens

    if cfg.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", cfg.llm_base_url)
        kwargs["base_url"] = cfg.llm_base_url
        # Custom servers often need no key; LangChain requires a non-empty value.
        kwargs["api_key"] = cfg.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = cfg.openai_api_key

    return ChatOpenAI(**kwargs)
