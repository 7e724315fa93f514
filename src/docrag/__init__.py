"""
docrag — retrieval core for answering questions from a single document.

Public API
----------
- :class:`RagService` — ingestion and retrieval call boundaries.
- :class:`IngestionPipeline`, :class:`Embedder` — ingestion building blocks.
- :class:`Retriever`, :class:`VectorStoreBase` — retrieval building blocks.
"""

from docrag.errors import (
    EmptyContentError,
    FetchError,
    ModelUnavailableError,
    NotFoundError,
    RagError,
    StoreError,
)
from docrag.ingestion.embedder import Embedder
from docrag.ingestion.pipeline import IngestionPipeline
from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.retriever import Retriever
from docrag.service import RagService

__all__ = [
    "EmptyContentError",
    "Embedder",
    "FetchError",
    "IngestionPipeline",
    "ModelUnavailableError",
    "NotFoundError",
    "RagError",
    "RagService",
    "Retriever",
    "StoreError",
    "VectorStoreBase",
]
