"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Set to any OpenAI-compatible endpoint (vLLM, Ollama, …), e.g. "
            "'http://llm-server.local/v1'"
        ),
    )
    llm_timeout: float = Field(default=60.0, gt=0, description="Seconds before a completion call is abandoned")
    summary_temperature: float = 0.3
    summary_max_tokens: int = 250
    chat_temperature: float = 0.1
    chat_max_tokens: int = 1000

    # Vector store
    chroma_host: str = Field(
        default="",
        description="Chroma server host. Leave empty to use an embedded persistent client.",
    )
    chroma_port: int = 8000
    chroma_persist_directory: str = ".chroma"
    distance_metric: str = "cosine"
    upsert_batch_size: int = Field(default=5000, gt=0)

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_concurrency: int = Field(default=4, gt=0, description="Max in-flight embedding requests per ingestion")
    embedding_timeout: float = Field(default=30.0, gt=0)

    # Chunking
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)

    # Admission limits
    pdf_max_file_size: int = Field(default=5 * 1024 * 1024, description="Bytes")
    text_min_characters: int = 10
    text_max_characters: int = 5000
    website_max_characters: int = 10_000
    pdf_max_chunks: int = 500
    text_max_chunks: int = 100
    website_max_chunks: int = 200

    # Website fetching
    fetch_timeout: float = Field(default=30.0, gt=0)
    fetch_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    # Retrieval
    summary_k: int = 10
    summary_max_context_chars: int = 4000
    chat_k: int = 5
    chat_history_messages: int = 6

    # Serving
    server_host: str = "0.0.0.0"
    server_port: int = 8080

    # Behaviour
    cleanup_on_failure: bool = Field(
        default=True,
        description="Delete a collection whose indexing failed part-way",
    )
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def check_chunking(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self


# Singleton: import `settings` wherever a default is needed.
settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings (FastAPI dependency hook)."""
    return settings
