"""Document-scoped semantic retriever.

This module is the **primary public interface** for retrieval.  A query is
answered in two explicit steps:

1. :meth:`Retriever.ensure_ingested` — read the document's entries and, if
   they are missing, ingest the raw text once from the configured
   :class:`~docrag.retrieval.sources.DocumentSource`.
2. :meth:`Retriever.query_once` — embed the query and rank the entries by
   cosine similarity.

Usage::

    retriever = Retriever(store, embedder, pipeline=pipeline, source=source)
    result = await retriever.retrieve(42, "Who is eligible?", top_k=3)
    for chunk, score in zip(result.chunks, result.scores):
        print(f"{score:.3f}", chunk[:80])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docrag.config import settings
from docrag.errors import NotFoundError, RagError, StoreError
from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.models import DocumentId, RetrievalResult, StoreEntry
from docrag.retrieval.similarity import score_all, top_k as rank_top_k
from docrag.retrieval.sources import DocumentSource

if TYPE_CHECKING:
    from docrag.ingestion.embedder import Embedder
    from docrag.ingestion.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


class Retriever:
    """Top-K chunk retrieval for a single document.

    Parameters
    ----------
    store:
        Vector store holding the ingested entries.
    embedder:
        The same embedder instance ingestion uses; vectors from different
        models are not comparable.
    pipeline:
        Used for on-demand ingestion.  Without it (or without *source*)
        missing documents raise :class:`NotFoundError` directly.
    source:
        Provider of raw document text for on-demand ingestion.
    default_k:
        Number of chunks returned when ``top_k`` is not given.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        pipeline: IngestionPipeline | None = None,
        source: DocumentSource | None = None,
        default_k: int = settings.default_top_k,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._pipeline = pipeline
        self._source = source
        self.default_k = default_k

    # -- public API -----------------------------------------------------------

    async def retrieve(
        self,
        document_id: DocumentId,
        query: str,
        top_k: int | None = None,
    ) -> RetrievalResult:
        """Return the *top_k* chunks of *document_id* most similar to *query*.

        Raises
        ------
        NotFoundError
            The document has no entries and none could be ingested.
        ModelUnavailableError
            The query could not be embedded.
        StoreError
            The store could not be read, or holds vectors of another model.
        """
        k = self.default_k if top_k is None else top_k
        if k < 1:
            raise ValueError(f"top_k must be >= 1, got {k}")
        entries = await self.ensure_ingested(document_id)
        return await self.query_once(document_id, entries, query, k)

    async def ensure_ingested(self, document_id: DocumentId) -> list[StoreEntry]:
        """Return the document's entries, ingesting them once if absent."""
        entries = await self._store.get(document_id)
        if entries:
            return entries

        if self._pipeline is None or self._source is None:
            raise NotFoundError(f"Document {document_id} is not in the retrieval store")

        try:
            raw_text = await self._source.get_text(document_id)
        except Exception as exc:
            logger.error("Loading source text of document %s failed: %s", document_id, exc)
            raise NotFoundError(f"Source text of document {document_id} is unavailable") from exc
        if not raw_text:
            raise NotFoundError(f"Document {document_id} not found; please re-upload it")

        logger.info("Document %s missing from store; ingesting on demand", document_id)
        try:
            await self._pipeline.run(document_id, raw_text)
        except RagError as exc:
            logger.error("On-demand ingestion of document %s failed: %s", document_id, exc)
            raise NotFoundError(f"Document {document_id} could not be ingested") from exc

        entries = await self._store.get(document_id)
        if not entries:
            raise NotFoundError(f"Document {document_id} is still missing after ingestion")
        return entries

    async def query_once(
        self,
        document_id: DocumentId,
        entries: list[StoreEntry],
        query: str,
        top_k: int,
    ) -> RetrievalResult:
        """Rank *entries* against *query* without touching the store."""
        query_vec = await self._embedder.embed(query)
        stored_dim = entries[0].embedding.dim
        if stored_dim != query_vec.dim:
            raise StoreError(
                f"Stored vectors of document {document_id} have {stored_dim} dimensions but the "
                f"query has {query_vec.dim}; they were produced by a different embedding model"
            )
        scores = score_all(query_vec, [e.embedding for e in entries])
        best = rank_top_k(scores, top_k)
        result = RetrievalResult(
            document_id=document_id,
            chunks=[entries[i].text for i in best],
            scores=[float(scores[i]) for i in best],
        )
        logger.debug("Retrieved %s for query %r", result, query[:60])
        return result
