"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import re
import threading
import time
import zlib
from typing import Any

import pytest

from docrag.ingestion.embedder import Embedder
from docrag.retrieval.memory_store import InMemoryVectorStore

FAKE_DIM = 256


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake embedding model ────────────────────────────────────────────────


class FakeEmbeddingModel:
    """Deterministic character-trigram hashing embedder.

    Texts sharing word fragments ("eligible" / "eligibility") land close
    together, which is enough to test ranking without a real model.
    """

    def __init__(self, dim: int = FAKE_DIM, *, delay: float = 0.0, fail_on: str | None = None) -> None:
        self.dim = dim
        self.delay = delay
        self.fail_on = fail_on
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def embed_query(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_on is not None and self.fail_on in text:
            raise RuntimeError("inference crashed")
        vec = [0.0] * self.dim
        for word in re.findall(r"\w+", text.lower()):
            padded = f" {word} "
            for i in range(len(padded) - 2):
                vec[zlib.crc32(padded[i : i + 3].encode()) % self.dim] += 1.0
        return vec


class CountingLoader:
    """Model loader that records how many times it was invoked."""

    def __init__(self, model: Any = None, *, delay: float = 0.0, error: Exception | None = None) -> None:
        self.model = model if model is not None else FakeEmbeddingModel()
        self.delay = delay
        self.error = error
        self.loads = 0
        self._lock = threading.Lock()

    def __call__(self, model_name: str) -> Any:
        with self._lock:
            self.loads += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.model


# ── Fake Chroma collection ──────────────────────────────────────────────


class FakeChromaCollection:
    """In-memory stand-in for a ``chromadb`` collection.

    Supports the ``get`` / ``upsert`` / ``delete`` calls the store makes,
    with equality ``where`` filters.
    """

    def __init__(self, *, fail_on_upsert: int | None = None) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.upsert_calls = 0
        self.fail_on_upsert = fail_on_upsert

    @staticmethod
    def _matches(meta: dict[str, Any], where: dict[str, Any] | None) -> bool:
        return not where or all(meta.get(k) == v for k, v in where.items())

    def get(self, where: dict[str, Any] | None = None, include: list[str] | None = None) -> dict[str, Any]:
        include = include or ["documents", "metadatas"]
        hits = [(rid, row) for rid, row in self.rows.items() if self._matches(row["metadata"], where)]
        result: dict[str, Any] = {"ids": [rid for rid, _ in hits]}
        if "documents" in include:
            result["documents"] = [row["document"] for _, row in hits]
        if "embeddings" in include:
            result["embeddings"] = [row["embedding"] for _, row in hits]
        if "metadatas" in include:
            result["metadatas"] = [row["metadata"] for _, row in hits]
        return result

    def upsert(self, ids, embeddings, documents, metadatas) -> None:  # noqa: ANN001
        self.upsert_calls += 1
        if self.fail_on_upsert is not None and self.upsert_calls == self.fail_on_upsert:
            raise ConnectionError("chroma went away")
        for rid, emb, doc, meta in zip(ids, embeddings, documents, metadatas):
            self.rows[rid] = {"embedding": list(emb), "document": doc, "metadata": dict(meta)}

    def delete(self, where: dict[str, Any] | None = None) -> None:
        for rid in [rid for rid, row in self.rows.items() if self._matches(row["metadata"], where)]:
            del self.rows[rid]


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def fake_model() -> FakeEmbeddingModel:
    return FakeEmbeddingModel()


@pytest.fixture()
def embedder(fake_model: FakeEmbeddingModel) -> Embedder:
    return Embedder("fake-trigram", timeout=5.0, loader=CountingLoader(fake_model))


@pytest.fixture()
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


ELIGIBILITY_TEXT = (
    "Residents over sixty are eligible for the property tax exemption. "
    "Eligibility requires proof of age and an income below the county limit."
)
DEADLINE_TEXT = (
    "Applications must be submitted before the deadline on March thirty first. "
    "Late forms will be returned to the sender without review."
)
