"""
Ingestion — text extraction, normalization, chunking and embedding.

Converts raw document text (PDF, web page, plain text) into embedded
chunks written to a vector store in a single all-or-nothing step.
"""

from docrag.ingestion.chunker import chunk_text
from docrag.ingestion.normalizer import normalize

__all__ = ["chunk_text", "normalize"]
