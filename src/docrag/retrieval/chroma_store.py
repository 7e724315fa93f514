"""Chroma implementation of the vector-store abstraction.

Layout: one row per chunk in a single collection.

* id        — ``"<key>:<chunk_index>"`` (deterministic, so re-runs
  overwrite instead of duplicating)
* document  — chunk text
* embedding — chunk vector
* metadata  — ``document_id`` (the key), ``start``, ``end``, ``chunk_index``,
  ``chunk_count``

Documents are keyed by ``"<type>:<id>"`` (``"int:7"``, ``"str:7"``) so ids of
different types never collide, matching the in-memory store.

A document counts as present only when the number of rows equals the
``chunk_count`` recorded on them, so an interrupted write is never served.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Sequence
from typing import Any

from docrag.config import settings
from docrag.errors import StoreError
from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.models import ChunkMetadata, DocumentId, StoreEntry, Vector

logger = logging.getLogger(__name__)


def _key(document_id: DocumentId) -> str:
    return f"{type(document_id).__name__}:{document_id}"


def _where(document_id: DocumentId) -> dict[str, Any]:
    return {"document_id": _key(document_id)}


def _row_id(document_id: DocumentId, chunk_index: int) -> str:
    return f"{_key(document_id)}:{chunk_index}"


def _column(result: dict[str, Any], key: str) -> list[Any]:
    # Chroma may hand back numpy arrays; never test them for truthiness.
    value = result.get(key)
    return [] if value is None else list(value)


def _is_complete(metadatas: list[dict[str, Any]]) -> bool:
    if not metadatas:
        return False
    expected = {int(m.get("chunk_count", -1)) for m in metadatas}
    return len(expected) == 1 and expected.pop() == len(metadatas)


class ChromaVectorStore(VectorStoreBase):
    """Durable Chroma-backed store.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host / port:
        Chroma server address, used when *client* is not given.
    client:
        Pre-built Chroma client (e.g. ``chromadb.EphemeralClient()``).
    collection:
        Pre-built collection object; takes precedence over *client*.
    upsert_batch_size:
        Max rows per upsert call.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        client: Any = None,
        collection: Any = None,
        upsert_batch_size: int = settings.upsert_batch_size,
    ) -> None:
        super().__init__(collection_name)
        if collection is None:
            if client is None:
                import chromadb

                client = chromadb.HttpClient(host=host, port=port)
            collection = client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        self._client = client
        self._collection = collection
        self.upsert_batch_size = upsert_batch_size
        # entries vanish once no put/delete holds or awaits the lock
        self._write_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # -- internals ------------------------------------------------------------

    async def _call(self, action: str, fn: Any, /, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except Exception as exc:
            raise StoreError(f"Chroma {action} failed: {exc}") from exc

    def _lock_for(self, document_id: DocumentId) -> asyncio.Lock:
        key = _key(document_id)
        lock = self._write_locks.get(key)
        if lock is None:
            lock = self._write_locks[key] = asyncio.Lock()
        return lock

    async def _metadatas(self, document_id: DocumentId) -> list[dict[str, Any]]:
        result = await self._call(
            "get", self._collection.get, where=_where(document_id), include=["metadatas"]
        )
        return [m or {} for m in _column(result, "metadatas")]

    # -- VectorStoreBase overrides --------------------------------------------

    async def has(self, document_id: DocumentId) -> bool:
        return _is_complete(await self._metadatas(document_id))

    async def put(self, document_id: DocumentId, entries: Sequence[StoreEntry]) -> None:
        self._validate_entries(document_id, entries)
        async with self._lock_for(document_id):
            existing = await self._metadatas(document_id)
            if _is_complete(existing):
                logger.debug("Document %s already stored; skipping put", document_id)
                return
            if existing:
                logger.warning(
                    "Discarding %d stale rows of incomplete document %s",
                    len(existing),
                    document_id,
                )
                await self._call("delete", self._collection.delete, where=_where(document_id))

            count = len(entries)
            ids = [_row_id(document_id, i) for i in range(count)]
            documents = [e.text for e in entries]
            embeddings = [list(e.embedding.values) for e in entries]
            metadatas = [
                {
                    "document_id": _key(document_id),
                    "start": e.metadata.start,
                    "end": e.metadata.end,
                    "chunk_index": i,
                    "chunk_count": count,
                }
                for i, e in enumerate(entries)
            ]

            try:
                for start in range(0, count, self.upsert_batch_size):
                    end = start + self.upsert_batch_size
                    await self._call(
                        "upsert",
                        self._collection.upsert,
                        ids=ids[start:end],
                        embeddings=embeddings[start:end],
                        documents=documents[start:end],
                        metadatas=metadatas[start:end],
                    )
                    logger.debug(
                        "  upserted rows %d-%d of document %s", start, min(end, count), document_id
                    )
            except StoreError:
                logger.error("Write of document %s failed; rolling back", document_id)
                try:
                    await self._call("delete", self._collection.delete, where=_where(document_id))
                except StoreError:
                    logger.exception("Rollback of document %s failed", document_id)
                raise

        logger.info("Indexed %d rows for document %s in '%s'", count, document_id, self.collection_name)

    async def get(self, document_id: DocumentId) -> list[StoreEntry] | None:
        result = await self._call(
            "get",
            self._collection.get,
            where=_where(document_id),
            include=["documents", "embeddings", "metadatas"],
        )
        metadatas = [m or {} for m in _column(result, "metadatas")]
        if not metadatas:
            return None
        if not _is_complete(metadatas):
            logger.warning("Document %s has an incomplete row set; treating as absent", document_id)
            return None

        rows = zip(_column(result, "documents"), _column(result, "embeddings"), metadatas)
        entries = [
            StoreEntry(
                text=text or "",
                embedding=Vector.from_model_output(embedding, normalize=False),
                metadata=ChunkMetadata(
                    start=int(meta["start"]),
                    end=int(meta["end"]),
                    chunk_index=int(meta["chunk_index"]),
                    chunk_count=int(meta["chunk_count"]),
                ),
            )
            for text, embedding, meta in rows
        ]
        entries.sort(key=lambda e: e.metadata.chunk_index)
        return entries

    async def delete(self, document_id: DocumentId) -> None:
        async with self._lock_for(document_id):
            await self._call("delete", self._collection.delete, where=_where(document_id))
        logger.info("Deleted rows for document %s", document_id)

    async def health_check(self) -> bool:
        if self._client is None:
            return True
        try:
            await asyncio.to_thread(self._client.heartbeat)
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
