"""Sentence-transformer embedding with lazy, single-flight model loading."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from docrag.config import settings
from docrag.errors import ModelUnavailableError
from docrag.retrieval.models import Vector

logger = logging.getLogger(__name__)


class EmbeddingModel(Protocol):
    """The slice of the LangChain ``Embeddings`` interface we rely on."""

    def embed_query(self, text: str) -> Sequence[float]: ...


ModelLoader = Callable[[str], EmbeddingModel]


def load_huggingface_model(model_name: str) -> EmbeddingModel:
    """Load a sentence-transformer through ``langchain_huggingface``.

    Mean pooling comes from the model's sentence-transformers config;
    vectors are L2-normalized at encode time.
    """
    from langchain_huggingface import HuggingFaceEmbeddings

    return HuggingFaceEmbeddings(
        model_name=model_name,
        encode_kwargs={"normalize_embeddings": True},
    )


class Embedder:
    """Maps text to fixed-length :class:`Vector` embeddings.

    The model is loaded on first use and shared by every caller of this
    instance.  Concurrent first calls await the same load task, which is
    cached before the load begins.  Loading and inference run in worker
    threads and are bounded by *timeout*.

    Parameters
    ----------
    model_name:
        HuggingFace model id.  Ingestion and retrieval must use the same one.
    timeout:
        Seconds allowed for the model load and for each inference call.
    loader:
        Factory returning an object with ``embed_query``.  Defaults to
        :func:`load_huggingface_model`.
    """

    def __init__(
        self,
        model_name: str = settings.embedding_model,
        *,
        timeout: float = settings.embedding_timeout_seconds,
        loader: ModelLoader | None = None,
    ) -> None:
        self.model_name = model_name
        self.timeout = timeout
        self._loader = loader or load_huggingface_model
        self._model_task: asyncio.Task[EmbeddingModel] | None = None
        self._dim: int | None = None

    @property
    def dimension(self) -> int | None:
        """Embedding size, known after the first successful :meth:`embed`."""
        return self._dim

    # -- model lifecycle ------------------------------------------------------

    async def _load(self) -> EmbeddingModel:
        logger.info("Loading embedding model %s", self.model_name)
        try:
            model = await asyncio.wait_for(
                asyncio.to_thread(self._loader, self.model_name), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise ModelUnavailableError(
                f"Timed out loading embedding model {self.model_name!r} after {self.timeout}s",
                retryable=True,
            ) from exc
        except Exception as exc:
            raise ModelUnavailableError(
                f"Failed to load embedding model {self.model_name!r}: {exc}"
            ) from exc
        logger.info("Embedding model %s ready", self.model_name)
        return model

    async def _get_model(self) -> EmbeddingModel:
        if self._model_task is None:
            self._model_task = asyncio.ensure_future(self._load())
        task = self._model_task
        try:
            # shield: one cancelled caller must not cancel the shared load
            return await asyncio.shield(task)
        except ModelUnavailableError:
            if self._model_task is task:
                self._model_task = None
            raise

    # -- public API -----------------------------------------------------------

    async def embed(self, text: str) -> Vector:
        """Embed a single text segment."""
        model = await self._get_model()
        try:
            raw: Any = await asyncio.wait_for(
                asyncio.to_thread(model.embed_query, text), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise ModelUnavailableError(
                f"Embedding call timed out after {self.timeout}s", retryable=True
            ) from exc
        except Exception as exc:
            raise ModelUnavailableError(f"Embedding call failed: {exc}") from exc

        try:
            vector = Vector.from_model_output(raw)
        except ValueError as exc:
            raise ModelUnavailableError(f"Model returned an unusable embedding: {exc}") from exc

        if self._dim is None:
            self._dim = vector.dim
        elif vector.dim != self._dim:
            raise ModelUnavailableError(
                f"Embedding dimension changed from {self._dim} to {vector.dim}"
            )
        return vector

    async def embed_many(self, texts: Sequence[str]) -> list[Vector]:
        """Embed *texts* concurrently, preserving input order."""
        return list(await asyncio.gather(*(self.embed(t) for t in texts)))
