"""Exceptions shared by the ingestion and query services."""
from __future__ import annotations


class EmbeddingError(RuntimeError):
    """Raised when the embedding backend fails to produce vectors."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class EmbeddingRateLimitError(EmbeddingError):
    """Raised when the embedding backend rejects a call because of rate limits."""


class IngestionError(RuntimeError):
    """Raised when a single document cannot be ingested."""

    def __init__(self, message: str, *, source_file: str | None = None, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.source_file = source_file
        self.__cause__ = cause


class QueryValidationError(ValueError):
    """Raised when query parameters are rejected before touching storage."""
