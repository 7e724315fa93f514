"""Error taxonomy for the retrieval core.

Every failure that crosses a component boundary is one of these types, so
callers can decide between falling back, retrying later, or giving up
without inspecting messages.
"""

from __future__ import annotations


class RagError(Exception):
    """Base class for all retrieval-core errors.

    Attributes
    ----------
    retryable:
        ``True`` when the same call may succeed later (timeouts, transient
        network failures).  The pipeline never retries on its own; the flag
        is a hint for the caller.
    """

    retryable: bool = False

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class EmptyContentError(RagError):
    """Normalized text is empty or too short to be worth chunking."""


class ModelUnavailableError(RagError):
    """The embedding model failed to load, errored, or timed out."""


class NotFoundError(RagError):
    """No entries exist for a document and none could be ingested on demand."""


class StoreError(RagError):
    """A vector-store read or write failed."""


class FetchError(RagError):
    """A web page could not be downloaded or yielded no usable text."""

    retryable = True
