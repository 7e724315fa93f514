"""Abstract base class for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`
and implementing the abstract coroutines.  The retriever and the
ingestion pipeline are backend-agnostic.

Every backend honours the same completeness rule: for a given document
the entry set seen by :meth:`has` and :meth:`get` is either empty or
complete, never partial.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from docrag.errors import StoreError
from docrag.retrieval.models import DocumentId, StoreEntry


class VectorStoreBase(ABC):
    """Backend-agnostic, document-partitioned vector store.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def has(self, document_id: DocumentId) -> bool:
        """Return ``True`` when a complete entry set exists for *document_id*."""
        ...

    @abstractmethod
    async def put(self, document_id: DocumentId, entries: Sequence[StoreEntry]) -> None:
        """Store *entries* for *document_id*.

        Idempotent: when the document already has entries this is a no-op,
        even if *entries* differ.  Use :meth:`delete` first to replace.
        """
        ...

    @abstractmethod
    async def get(self, document_id: DocumentId) -> list[StoreEntry] | None:
        """Return the entries in chunk order, or ``None`` when absent."""
        ...

    @abstractmethod
    async def delete(self, document_id: DocumentId) -> None:
        """Remove every entry of *document_id*.  Missing documents are ignored."""
        ...

    # -- optional overrides ---------------------------------------------------

    async def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        return True

    # -- helpers --------------------------------------------------------------

    @staticmethod
    def _validate_entries(document_id: DocumentId, entries: Sequence[StoreEntry]) -> None:
        if not entries:
            raise StoreError(f"Refusing to store an empty entry set for document {document_id}")
        dims = {e.embedding.dim for e in entries}
        if len(dims) != 1:
            raise StoreError(
                f"Mixed embedding dimensions {sorted(dims)} for document {document_id}"
            )
