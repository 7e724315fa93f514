"""Access to raw document text for on-demand ingestion."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from docrag.retrieval.models import DocumentId


@runtime_checkable
class DocumentSource(Protocol):
    """Anything that can hand back a document's extracted text.

    In a deployment this is the document-analysis store (e.g. the table
    holding uploaded PDFs and their extracted text).
    """

    async def get_text(self, document_id: DocumentId) -> str | None:
        """Return the raw text of *document_id*, or ``None`` if unknown."""
        ...


class InMemoryDocumentSource:
    """Dict-backed :class:`DocumentSource`."""

    def __init__(self, texts: dict[DocumentId, str] | None = None) -> None:
        self._texts: dict[DocumentId, str] = dict(texts or {})

    async def get_text(self, document_id: DocumentId) -> str | None:
        return self._texts.get(document_id)

    def add(self, document_id: DocumentId, text: str) -> None:
        self._texts[document_id] = text

    def remove(self, document_id: DocumentId) -> None:
        self._texts.pop(document_id, None)
