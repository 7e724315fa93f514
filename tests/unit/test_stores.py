"""Unit tests for the in-memory and Chroma vector-store backends."""

from __future__ import annotations

import gc
import uuid

import pytest

from docrag.errors import StoreError
from docrag.retrieval.base import VectorStoreBase
from docrag.retrieval.chroma_store import ChromaVectorStore
from docrag.retrieval.memory_store import InMemoryVectorStore
from docrag.retrieval.models import ChunkMetadata, StoreEntry, Vector
from tests.conftest import FakeChromaCollection


def make_entries(n: int, dim: int = 4, prefix: str = "chunk") -> list[StoreEntry]:
    entries = []
    for i in range(n):
        values = [0.0] * dim
        values[i % dim] = 1.0
        entries.append(
            StoreEntry(
                text=f"{prefix} {i}",
                embedding=Vector(values=tuple(values)),
                metadata=ChunkMetadata(start=i * 10, end=i * 10 + 8, chunk_index=i, chunk_count=n),
            )
        )
    return entries


@pytest.fixture(params=["memory", "chroma-fake"])
def store(request: pytest.FixtureRequest) -> VectorStoreBase:
    if request.param == "memory":
        return InMemoryVectorStore()
    return ChromaVectorStore("test", collection=FakeChromaCollection())


# ── Contract shared by every backend ────────────────────────────────────


class TestStoreContract:
    @pytest.mark.asyncio
    async def test_absent_document(self, store: VectorStoreBase) -> None:
        assert await store.has(1) is False
        assert await store.get(1) is None

    @pytest.mark.asyncio
    async def test_put_then_get_in_chunk_order(self, store: VectorStoreBase) -> None:
        entries = make_entries(5)
        await store.put(7, entries)
        assert await store.has(7) is True
        got = await store.get(7)
        assert got is not None
        assert [e.text for e in got] == [e.text for e in entries]
        assert [e.metadata.start for e in got] == [0, 10, 20, 30, 40]
        assert got[2].embedding.values == entries[2].embedding.values

    @pytest.mark.asyncio
    async def test_put_is_idempotent(self, store: VectorStoreBase) -> None:
        await store.put(7, make_entries(3))
        await store.put(7, make_entries(5, prefix="other"))
        got = await store.get(7)
        assert got is not None
        assert [e.text for e in got] == ["chunk 0", "chunk 1", "chunk 2"]

    @pytest.mark.asyncio
    async def test_documents_are_partitioned(self, store: VectorStoreBase) -> None:
        await store.put(1, make_entries(2, prefix="one"))
        await store.put(2, make_entries(3, prefix="two"))
        assert [e.text for e in await store.get(1)] == ["one 0", "one 1"]
        assert len(await store.get(2)) == 3

    @pytest.mark.asyncio
    async def test_delete(self, store: VectorStoreBase) -> None:
        await store.put(1, make_entries(2))
        await store.put(2, make_entries(2))
        await store.delete(1)
        await store.delete(99)
        assert await store.has(1) is False
        assert await store.has(2) is True

    @pytest.mark.asyncio
    async def test_delete_then_reingest_replaces(self, store: VectorStoreBase) -> None:
        await store.put(1, make_entries(2))
        await store.delete(1)
        await store.put(1, make_entries(4, prefix="new"))
        assert [e.text for e in await store.get(1)][0] == "new 0"

    @pytest.mark.asyncio
    async def test_empty_entry_set_rejected(self, store: VectorStoreBase) -> None:
        with pytest.raises(StoreError):
            await store.put(1, [])
        assert await store.has(1) is False

    @pytest.mark.asyncio
    async def test_mixed_dimensions_rejected(self, store: VectorStoreBase) -> None:
        entries = make_entries(2, dim=4) + make_entries(1, dim=3)
        with pytest.raises(StoreError, match="Mixed embedding dimensions"):
            await store.put(1, entries)
        assert await store.has(1) is False

    @pytest.mark.asyncio
    async def test_string_ids(self, store: VectorStoreBase) -> None:
        await store.put("https://example.org/page", make_entries(1))
        assert await store.has("https://example.org/page")

    @pytest.mark.asyncio
    async def test_int_and_str_ids_are_distinct(self, store: VectorStoreBase) -> None:
        await store.put(1, make_entries(2, prefix="int"))
        assert await store.has("1") is False
        assert await store.get("1") is None

        await store.put("1", make_entries(3, prefix="str"))
        assert [e.text for e in await store.get(1)] == ["int 0", "int 1"]
        assert len(await store.get("1")) == 3

        await store.delete("1")
        assert await store.has(1) is True

    @pytest.mark.asyncio
    async def test_health_check(self, store: VectorStoreBase) -> None:
        assert await store.health_check() is True


# ── Chroma-specific behaviour ───────────────────────────────────────────


class TestChromaVectorStore:
    @pytest.mark.asyncio
    async def test_row_layout(self) -> None:
        collection = FakeChromaCollection()
        store = ChromaVectorStore("test", collection=collection)
        await store.put(42, make_entries(2))
        assert set(collection.rows) == {"int:42:0", "int:42:1"}
        meta = collection.rows["int:42:1"]["metadata"]
        assert meta == {"document_id": "int:42", "start": 10, "end": 18, "chunk_index": 1, "chunk_count": 2}

    @pytest.mark.asyncio
    async def test_upserts_in_batches(self) -> None:
        collection = FakeChromaCollection()
        store = ChromaVectorStore("test", collection=collection, upsert_batch_size=2)
        await store.put(1, make_entries(5))
        assert collection.upsert_calls == 3
        assert len(await store.get(1)) == 5

    @pytest.mark.asyncio
    async def test_failed_write_is_rolled_back(self) -> None:
        collection = FakeChromaCollection(fail_on_upsert=2)
        store = ChromaVectorStore("test", collection=collection, upsert_batch_size=2)
        with pytest.raises(StoreError, match="chroma went away"):
            await store.put(1, make_entries(5))
        assert collection.rows == {}
        assert await store.has(1) is False

    @pytest.mark.asyncio
    async def test_incomplete_rows_are_invisible(self) -> None:
        collection = FakeChromaCollection()
        store = ChromaVectorStore("test", collection=collection)
        await store.put(1, make_entries(3))
        del collection.rows["int:1:2"]
        assert await store.has(1) is False
        assert await store.get(1) is None

    @pytest.mark.asyncio
    async def test_put_repairs_incomplete_document(self) -> None:
        collection = FakeChromaCollection()
        store = ChromaVectorStore("test", collection=collection)
        await store.put(1, make_entries(3))
        del collection.rows["int:1:0"]
        await store.put(1, make_entries(2, prefix="fresh"))
        assert [e.text for e in await store.get(1)] == ["fresh 0", "fresh 1"]

    @pytest.mark.asyncio
    async def test_write_locks_are_released(self) -> None:
        store = ChromaVectorStore("test", collection=FakeChromaCollection())
        for doc in range(5):
            await store.put(doc, make_entries(2))
            await store.delete(doc)
        gc.collect()
        assert len(store._write_locks) == 0

    @pytest.mark.asyncio
    async def test_read_errors_are_wrapped(self) -> None:
        class Broken(FakeChromaCollection):
            def get(self, *args, **kwargs):  # noqa: ANN002, ANN003
                raise TimeoutError("read timed out")

        store = ChromaVectorStore("test", collection=Broken())
        with pytest.raises(StoreError, match="read timed out"):
            await store.get(1)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_chroma_ephemeral_client_round_trip() -> None:
    chromadb = pytest.importorskip("chromadb")
    store = ChromaVectorStore(f"test-{uuid.uuid4().hex[:8]}", client=chromadb.EphemeralClient())
    await store.put(3, make_entries(3))
    got = await store.get(3)
    assert got is not None
    assert [e.text for e in got] == ["chunk 0", "chunk 1", "chunk 2"]
    assert got[1].embedding.values == pytest.approx((0.0, 1.0, 0.0, 0.0))
    await store.delete(3)
    assert await store.has(3) is False
