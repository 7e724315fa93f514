"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for a model load or a single inference call",
    )
    embed_batch_size: int = Field(default=10, ge=1, description="Chunks embedded concurrently per batch")

    # Chunking
    chunk_size: int = Field(default=1000, ge=1, description="Soft maximum characters per chunk")
    chunk_overlap: int = Field(default=200, ge=0, description="Characters carried over between chunks")
    min_content_chars: int = Field(
        default=50,
        ge=1,
        description="Normalized text shorter than this is refused by ingestion",
    )

    # Retrieval
    default_top_k: int = Field(default=3, ge=1)
    context_separator: str = "\n\n---\n\n"
    fallback_context_chars: int = Field(
        default=5000,
        ge=0,
        description="Raw-text window used when retrieval is unavailable",
    )

    # Vector store
    vector_store_backend: Literal["memory", "chroma"] = "memory"
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "document_chunks"
    upsert_batch_size: int = Field(default=5000, ge=1, description="Max rows per Chroma upsert call")

    # Web fetching
    fetch_timeout_seconds: float = 10.0
    fetch_max_retries: int = Field(default=3, ge=1)

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def check_chunk_overlap(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self


# Singleton — import `settings` wherever needed.
settings = Settings()
