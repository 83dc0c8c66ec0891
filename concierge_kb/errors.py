"""
Error Taxonomy

Exceptions raised across the concierge pipeline.

Hierarchy:
    ConciergeError
    ├── InvalidInput            - missing/blank property id or text, bad vectors (never retried)
    ├── StorageUnavailable      - knowledge store unreachable or timed out (retryable)
    ├── EmbeddingUnavailable    - embedding backend error or timeout (retryable)
    ├── GenerationUnavailable   - generative backend error, timeout, malformed output (retryable)
    │   └── RateLimited         - generative backend throttled the call (retryable)
    ├── GenerationFailed        - generation retries exhausted (terminal)
    └── ImportFailed            - listing page could not be fetched (retryable)

Visitor-facing answering converts everything except InvalidInput into the
fallback message; indexing propagates storage/embedding failures to the caller.
"""

from __future__ import annotations


class ConciergeError(Exception):
    """Base class for all concierge pipeline errors."""

    retryable: bool = False


class InvalidInput(ConciergeError, ValueError):
    """A request is missing required fields or violates a data invariant."""


class StorageUnavailable(ConciergeError):
    """The knowledge store could not be reached or did not answer in time."""

    retryable = True


class EmbeddingUnavailable(ConciergeError):
    """The embedding backend failed or did not answer in time."""

    retryable = True


class GenerationUnavailable(ConciergeError):
    """The generative-text backend failed, timed out, or returned unusable output."""

    retryable = True


class RateLimited(GenerationUnavailable):
    """The generative-text backend throttled the request."""


class GenerationFailed(ConciergeError):
    """Generation kept failing after the bounded retries."""

    def __init__(self, message: str, *, attempts: int, last_error: Exception | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ImportFailed(ConciergeError):
    """A listing page could not be fetched for import."""

    retryable = True


__all__ = [
    "ConciergeError",
    "InvalidInput",
    "StorageUnavailable",
    "EmbeddingUnavailable",
    "GenerationUnavailable",
    "RateLimited",
    "GenerationFailed",
    "ImportFailed",
]
