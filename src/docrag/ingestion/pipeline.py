"""Ingestion orchestration: normalize → chunk → embed → store.

The pipeline writes a document's entries with a single ``store.put`` after
every chunk has been embedded, so a failure at any step leaves nothing
behind for readers to find.

Usage::

    pipeline = IngestionPipeline(store, embedder)
    pipeline.schedule(42, extracted_text)      # fire-and-forget
    await pipeline.run(42, extracted_text)     # strict, raises on failure
"""

from __future__ import annotations

import asyncio
import logging
import time

from docrag.config import settings
from docrag.errors import EmptyContentError
from docrag.ingestion.chunker import chunk_text
from docrag.ingestion.embedder import Embedder
from docrag.ingestion.normalizer import normalize
from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.models import (
    ChunkMetadata,
    DocumentId,
    IngestionStatus,
    StoreEntry,
    Vector,
)

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Turns raw document text into stored, queryable entries.

    Parameters
    ----------
    store:
        Destination vector store.
    embedder:
        Embedder shared with the retriever.
    chunk_size / chunk_overlap:
        Forwarded to :func:`~docrag.ingestion.chunker.chunk_text`.
    batch_size:
        Chunks embedded concurrently; batches run one after another.
    min_content_chars:
        Normalized text shorter than this raises :class:`EmptyContentError`.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
        batch_size: int = settings.embed_batch_size,
        min_content_chars: int = settings.min_content_chars,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.store = store
        self.embedder = embedder
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.batch_size = batch_size
        self.min_content_chars = min_content_chars
        self._status: dict[DocumentId, IngestionStatus] = {}
        self._in_flight: dict[DocumentId, asyncio.Task[int]] = {}
        # identifies the current run per document; a run whose token was
        # dropped by forget() must not write
        self._tokens: dict[DocumentId, object] = {}
        self._background: set[asyncio.Task[None]] = set()

    # -- public API -----------------------------------------------------------

    def status(self, document_id: DocumentId) -> IngestionStatus:
        return self._status.get(document_id, IngestionStatus.NOT_STARTED)

    async def run(self, document_id: DocumentId, raw_text: str) -> int:
        """Ingest *raw_text* for *document_id* and return the number of chunks written.

        Returns ``0`` when the document is already stored.  Concurrent calls
        for the same document share one in-flight ingestion.

        Raises
        ------
        EmptyContentError
            The normalized text is shorter than ``min_content_chars``.
        ModelUnavailableError
            The embedding model could not be loaded or called.
        StoreError
            The vector store rejected the write.
        """
        task = self._in_flight.get(document_id)
        if task is None:
            task = asyncio.ensure_future(self._run(document_id, raw_text))
            self._in_flight[document_id] = task
            task.add_done_callback(lambda t: self._release(document_id, t))
        return await asyncio.shield(task)

    def forget(self, document_id: DocumentId) -> None:
        """Drop all bookkeeping for *document_id*.

        A run still in flight finishes its embedding work but discards the
        result instead of writing it, so a deletion made while ingestion is
        running is not undone.
        """
        self._tokens.pop(document_id, None)
        self._in_flight.pop(document_id, None)
        self._status.pop(document_id, None)

    async def ingest(self, document_id: DocumentId, raw_text: str) -> None:
        """Fire-and-forget entry point: failures are logged, never raised."""
        try:
            await self.run(document_id, raw_text)
        except Exception:
            logger.exception("Ingestion of document %s failed", document_id)

    def schedule(self, document_id: DocumentId, raw_text: str) -> asyncio.Task[None]:
        """Start :meth:`ingest` in the background and return its task."""
        task = asyncio.ensure_future(self.ingest(document_id, raw_text))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # -- internals ------------------------------------------------------------

    async def _run(self, document_id: DocumentId, raw_text: str) -> int:
        token = object()
        self._tokens[document_id] = token
        self._status[document_id] = IngestionStatus.IN_PROGRESS
        try:
            if await self.store.has(document_id):
                logger.debug("Document %s already ingested", document_id)
                written = 0
            else:
                written = await self._ingest_once(document_id, raw_text, token)
        except BaseException:
            self._settle(document_id, token, IngestionStatus.FAILED)
            raise
        self._settle(document_id, token, IngestionStatus.COMPLETE)
        return written

    def _settle(self, document_id: DocumentId, token: object, status: IngestionStatus) -> None:
        if self._tokens.get(document_id) is token:
            del self._tokens[document_id]
            self._status[document_id] = status

    def _release(self, document_id: DocumentId, task: asyncio.Task[int]) -> None:
        if self._in_flight.get(document_id) is task:
            del self._in_flight[document_id]

    async def _ingest_once(self, document_id: DocumentId, raw_text: str, token: object) -> int:
        text = normalize(raw_text)
        logger.info(
            "Processing document %s for retrieval (%d chars, %d normalized)",
            document_id,
            len(raw_text),
            len(text),
        )
        if len(text) < self.min_content_chars:
            raise EmptyContentError(
                f"Document {document_id} has {len(text)} usable characters; "
                f"at least {self.min_content_chars} are required"
            )

        chunks = chunk_text(text, self.chunk_size, self.chunk_overlap)
        logger.info("Created %d chunks from document %s", len(chunks), document_id)

        t0 = time.monotonic()
        vectors: list[Vector] = []
        for start in range(0, len(chunks), self.batch_size):
            batch = chunks[start : start + self.batch_size]
            vectors.extend(await self.embedder.embed_many([c.text for c in batch]))
            logger.info("  embedded %d / %d chunks of document %s", len(vectors), len(chunks), document_id)

        entries = [
            StoreEntry(
                text=chunk.text,
                embedding=vector,
                metadata=ChunkMetadata(
                    start=chunk.start,
                    end=chunk.end,
                    chunk_index=chunk.index,
                    chunk_count=len(chunks),
                ),
            )
            for chunk, vector in zip(chunks, vectors)
        ]
        if self._tokens.get(document_id) is not token:
            logger.info("Document %s was deleted during ingestion; discarding %d chunks", document_id, len(entries))
            return 0
        await self.store.put(document_id, entries)
        logger.info(
            "Document %s ready for retrieval: %d chunks in %.1fs",
            document_id,
            len(entries),
            time.monotonic() - t0,
        )
        return len(entries)
