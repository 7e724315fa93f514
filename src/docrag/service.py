"""Service facade — the call boundaries used by the document and chat handlers.

The document-analysis handler calls :meth:`RagService.ingest_document`
(or :meth:`RagService.ingest_url`) after text extraction; the chat handler
calls :meth:`RagService.build_context` and forwards the result to the
answer generator.  Retrieval is a quality optimisation: when it fails the
chat handler still gets a truncated raw-text window.
"""

from __future__ import annotations

import asyncio
import logging

from docrag.config import Settings, settings as default_settings
from docrag.errors import RagError
from docrag.ingestion.embedder import Embedder
from docrag.ingestion.loader import fetch_url_text
from docrag.ingestion.pipeline import IngestionPipeline
from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.memory_store import InMemoryVectorStore
from docrag.retrieval.models import DocumentId, GroundingContext, RetrievalResult
from docrag.retrieval.retriever import Retriever
from docrag.retrieval.sources import InMemoryDocumentSource

logger = logging.getLogger(__name__)


def build_store(cfg: Settings) -> VectorStoreBase:
    """Instantiate the vector store selected by ``cfg.vector_store_backend``."""
    if cfg.vector_store_backend == "chroma":
        from docrag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore(
            cfg.chroma_collection,
            host=cfg.chroma_host,
            port=cfg.chroma_port,
            upsert_batch_size=cfg.upsert_batch_size,
        )
    return InMemoryVectorStore()


class RagService:
    """Wires store, embedder, pipeline and retriever together.

    Parameters
    ----------
    store:
        Vector store backend.
    embedder:
        Embedder shared by ingestion and retrieval.
    source:
        Raw-text store used for on-demand ingestion and the fallback window.
    cfg:
        Settings for chunking, batching and context assembly.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        source: InMemoryDocumentSource | None = None,
        cfg: Settings = default_settings,
    ) -> None:
        self.cfg = cfg
        self.store = store
        self.embedder = embedder
        self.source = source if source is not None else InMemoryDocumentSource()
        self.pipeline = IngestionPipeline(
            store,
            embedder,
            chunk_size=cfg.chunk_size,
            chunk_overlap=cfg.chunk_overlap,
            batch_size=cfg.embed_batch_size,
            min_content_chars=cfg.min_content_chars,
        )
        self.retriever = Retriever(
            store,
            embedder,
            pipeline=self.pipeline,
            source=self.source,
            default_k=cfg.default_top_k,
        )

    @classmethod
    def from_settings(cls, cfg: Settings = default_settings) -> RagService:
        embedder = Embedder(cfg.embedding_model, timeout=cfg.embedding_timeout_seconds)
        return cls(build_store(cfg), embedder, cfg=cfg)

    # -- inbound: document analysis -------------------------------------------

    async def ingest_document(self, document_id: DocumentId, text: str) -> None:
        """Register *text* for *document_id* and ingest it.  Never raises."""
        self.source.add(document_id, text)
        await self.pipeline.ingest(document_id, text)

    async def ingest_url(self, document_id: DocumentId, url: str) -> str:
        """Fetch a web page, ingest its text and return that text.

        Raises
        ------
        FetchError
            The page could not be downloaded.
        """
        text = await asyncio.to_thread(
            fetch_url_text,
            url,
            timeout=self.cfg.fetch_timeout_seconds,
            max_retries=self.cfg.fetch_max_retries,
        )
        await self.ingest_document(document_id, text)
        return text

    async def delete_document(self, document_id: DocumentId) -> None:
        """Remove the document's entries and source text.

        Any ingestion of the document still running is told to discard its
        result before the store is cleared.
        """
        self.pipeline.forget(document_id)
        self.source.remove(document_id)
        await self.store.delete(document_id)

    # -- inbound: chat ---------------------------------------------------------

    async def retrieve_relevant_chunks(
        self,
        document_id: DocumentId,
        question: str,
        top_k: int | None = None,
    ) -> RetrievalResult:
        return await self.retriever.retrieve(document_id, question, top_k)

    async def build_context(
        self,
        document_id: DocumentId,
        question: str,
        raw_text: str | None = None,
        top_k: int | None = None,
    ) -> GroundingContext:
        """Return grounding context for *question*, falling back to raw text.

        When retrieval fails for any :class:`RagError`, the first
        ``fallback_context_chars`` characters of *raw_text* (or of the
        registered source text) are used instead.
        """
        try:
            result = await self.retrieve_relevant_chunks(document_id, question, top_k)
        except RagError as exc:
            logger.warning(
                "Retrieval for document %s unavailable (%s); using raw-text fallback",
                document_id,
                exc,
            )
            if raw_text is None:
                raw_text = await self.source.get_text(document_id) or ""
            return GroundingContext(
                text=raw_text[: self.cfg.fallback_context_chars],
                used_retrieval=False,
            )
        return GroundingContext(
            text=result.as_context(self.cfg.context_separator),
            used_retrieval=True,
            scores=result.scores,
        )
