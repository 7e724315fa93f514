"""Sentence-aware text chunking with character overlap."""

from __future__ import annotations

import re

from docrag.retrieval.models import TextChunk

# A run of non-terminators followed by its terminators, or a stray run of
# terminators.  Matches are contiguous and cover the whole input.
_SENTENCE = re.compile(r"[^.!?]+[.!?]*|[.!?]+")


def split_sentences(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` spans of the sentence-like units in *text*."""
    return [m.span() for m in _SENTENCE.finditer(text)]


def chunk_text(
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
) -> list[TextChunk]:
    """Split *text* into overlapping, sentence-aligned chunks.

    Sentences are accumulated greedily.  When the next sentence would push
    the buffer past *chunk_size*, the buffer is emitted and a new one starts
    with the last *chunk_overlap* characters of it, followed by that
    sentence.  A sentence longer than *chunk_size* is never split, so the
    size is a soft bound.

    Parameters
    ----------
    text:
        Normalized document text.
    chunk_size:
        Soft maximum number of characters per chunk.
    chunk_overlap:
        Number of characters repeated at the start of the next chunk.

    Returns
    -------
    list[TextChunk]
        Chunks in document order.  ``text[c.start:c.end] == c.text`` holds
        for every chunk.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ValueError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
        )

    chunks: list[TextChunk] = []
    # The buffer is always the contiguous slice text[buf_start:buf_end].
    buf_start = buf_end = 0

    def emit(start: int, end: int) -> None:
        piece = text[start:end]
        stripped = piece.strip()
        if not stripped:
            return
        lead = len(piece) - len(piece.lstrip())
        chunks.append(
            TextChunk(
                text=stripped,
                start=start + lead,
                end=start + lead + len(stripped),
                index=len(chunks),
            )
        )

    for sent_start, sent_end in split_sentences(text):
        has_content = bool(text[buf_start:buf_end].strip())
        if has_content and (sent_end - buf_start) > chunk_size:
            emit(buf_start, buf_end)
            buf_start = max(buf_start, buf_end - chunk_overlap)
        buf_end = sent_end

    emit(buf_start, buf_end)
    return chunks
