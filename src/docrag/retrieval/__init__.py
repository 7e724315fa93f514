"""
Retrieval — vector storage, cosine ranking and on-demand ingestion.

This module wraps the vector store behind a clean interface so that
callers never need to know which backend holds the embeddings.

Public surface
--------------
- :class:`Retriever` — main entry point for top-K retrieval.
- :class:`VectorStoreBase` — abstract backend.
- :class:`InMemoryVectorStore` — process-local backend.
- :class:`ChromaVectorStore` — durable Chroma backend.
- :class:`RetrievalResult`, :class:`StoreEntry`, :class:`Vector` — data models.
"""

from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.memory_store import InMemoryVectorStore
from docrag.retrieval.models import (
    ChunkMetadata,
    GroundingContext,
    IngestionStatus,
    RetrievalResult,
    StoreEntry,
    TextChunk,
    Vector,
)
from docrag.retrieval.retriever import Retriever

__all__ = [
    "ChromaVectorStore",
    "ChunkMetadata",
    "GroundingContext",
    "InMemoryVectorStore",
    "IngestionStatus",
    "RetrievalResult",
    "Retriever",
    "StoreEntry",
    "TextChunk",
    "Vector",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from docrag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
