"""Domain models for chunks, vectors, stored entries and retrieval results."""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

DocumentId = Union[int, str]


class IngestionStatus(str, Enum):
    """Lifecycle of a document inside the retrieval core."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    FAILED = "failed"


class TextChunk(BaseModel):
    """A contiguous slice of a document's normalized text.

    Attributes
    ----------
    text:
        The chunk content, stripped of surrounding whitespace.
    start / end:
        Character offsets into the normalized text; ``normalized[start:end]``
        is exactly ``text``.
    index:
        Ordinal position of the chunk within the document.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    index: int = Field(ge=0)


class Vector(BaseModel):
    """Fixed-length dense embedding.

    This is the only representation of model output the rest of the code
    sees; raw tensors and arrays are converted in :meth:`from_model_output`.
    """

    model_config = ConfigDict(frozen=True)

    values: tuple[float, ...]

    @field_validator("values")
    @classmethod
    def _finite(cls, values: tuple[float, ...]) -> tuple[float, ...]:
        if not values:
            raise ValueError("vector must have at least one dimension")
        if not all(math.isfinite(v) for v in values):
            raise ValueError("vector contains non-finite values")
        return values

    @property
    def dim(self) -> int:
        return len(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def as_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=np.float64)

    def norm(self) -> float:
        return float(np.linalg.norm(self.as_array()))

    def normalized(self) -> Vector:
        """Return the L2-normalized vector; a zero vector is returned as is."""
        n = self.norm()
        if n == 0.0:
            return self
        return Vector(values=tuple(float(v) for v in self.as_array() / n))

    @classmethod
    def from_model_output(cls, raw: Any, *, normalize: bool = True) -> Vector:
        """Convert a model output (list, tuple, numpy array) to a :class:`Vector`.

        Batched outputs of shape ``(1, dim)`` are flattened.
        """
        arr = np.asarray(raw, dtype=np.float64)
        if arr.ndim == 2 and arr.shape[0] == 1:
            arr = arr[0]
        if arr.ndim != 1:
            raise ValueError(f"expected a 1-D embedding, got shape {arr.shape}")
        vec = cls(values=tuple(float(v) for v in arr))
        return vec.normalized() if normalize else vec


class ChunkMetadata(BaseModel):
    """Positional metadata persisted next to every embedding."""

    start: int
    end: int
    chunk_index: int
    chunk_count: int


class StoreEntry(BaseModel):
    """The persisted unit: one chunk with its embedding and metadata."""

    model_config = ConfigDict(frozen=True)

    text: str
    embedding: Vector
    metadata: ChunkMetadata


class RetrievalResult(BaseModel):
    """Top-K chunks for one query, ordered by descending score."""

    document_id: DocumentId
    chunks: list[str] = Field(default_factory=list)
    scores: list[float] = Field(default_factory=list)

    def as_context(self, separator: str = "\n\n---\n\n") -> str:
        """Join the chunks into a single grounding context string."""
        return separator.join(self.chunks)

    def __str__(self) -> str:  # noqa: D105
        top = f"{self.scores[0]:.3f}" if self.scores else "-"
        return f"[doc {self.document_id}] {len(self.chunks)} chunks (top score {top})"


class GroundingContext(BaseModel):
    """Context handed to the answer generator.

    Attributes
    ----------
    text:
        Either the joined retrieved chunks or a truncated raw-text window.
    used_retrieval:
        ``False`` when retrieval failed and the fallback window was used.
    scores:
        Similarity scores of the retrieved chunks (empty on fallback).
    """

    text: str
    used_retrieval: bool
    scores: list[float] = Field(default_factory=list)
