"""Process-local vector store.  Contents are lost on restart."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.models import DocumentId, StoreEntry

logger = logging.getLogger(__name__)


class InMemoryVectorStore(VectorStoreBase):
    """Dict-backed store keyed by document id.

    Each document's entries are published with a single dict assignment,
    so readers see either nothing or the full set.
    """

    def __init__(self, collection_name: str = "memory") -> None:
        super().__init__(collection_name)
        self._documents: dict[DocumentId, tuple[StoreEntry, ...]] = {}

    async def has(self, document_id: DocumentId) -> bool:
        return document_id in self._documents

    async def put(self, document_id: DocumentId, entries: Sequence[StoreEntry]) -> None:
        if document_id in self._documents:
            logger.debug("Document %s already stored; skipping put", document_id)
            return
        self._validate_entries(document_id, entries)
        self._documents[document_id] = tuple(entries)
        logger.info("Stored %d entries for document %s", len(entries), document_id)

    async def get(self, document_id: DocumentId) -> list[StoreEntry] | None:
        entries = self._documents.get(document_id)
        return list(entries) if entries is not None else None

    async def delete(self, document_id: DocumentId) -> None:
        if self._documents.pop(document_id, None) is not None:
            logger.info("Deleted entries for document %s", document_id)
