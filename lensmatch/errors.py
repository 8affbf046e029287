"""
Lensmatch Discover: service-level exception taxonomy.

Services raise these; ``lensmatch.main`` maps them to HTTP responses.
``EnrichmentError`` never leaves the enrichment service.
"""

from __future__ import annotations


class LensmatchError(Exception):
    """Base class for errors that carry a caller-facing message."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LensmatchError):
    """Caller fault: self-swipe, unknown direction, bad limits or budgets."""

    status_code = 400


class NotFoundError(LensmatchError):
    status_code = 404


class TransientStoreError(LensmatchError):
    """Persistence failure, surfaced as an opaque retryable error."""

    status_code = 503


class EnrichmentError(LensmatchError):
    """Text generation failed or timed out.  Logged, never surfaced."""
