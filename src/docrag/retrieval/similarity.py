"""Cosine similarity and exact top-K ranking."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from docrag.retrieval.models import Vector


def score_all(query: Vector, candidates: Sequence[Vector]) -> np.ndarray:
    """Cosine similarity of *query* against every candidate, in input order.

    A candidate or query with zero norm scores ``0.0``; every score is
    clipped to ``[-1, 1]``.
    """
    if not candidates:
        return np.zeros(0)
    matrix = np.vstack([c.as_array() for c in candidates])
    if matrix.shape[1] != query.dim:
        raise ValueError(f"dimension mismatch: {matrix.shape[1]} != {query.dim}")
    q = query.as_array()
    denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom != 0)
    return np.clip(scores, -1.0, 1.0)


def top_k(scores: np.ndarray, k: int) -> list[int]:
    """Indices of the *k* highest scores, descending; ties keep input order."""
    order = np.argsort(-scores, kind="stable")
    return [int(i) for i in order[:k]]
