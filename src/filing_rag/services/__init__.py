"""Ingestion and query services built on an injected :class:`ChunkTable`."""

from .ingestion import BatchIngestResult, IngestionService, IngestResult
from .query import FinancialSummary, QueryEngine, similarity_from_distance

__all__ = [
    "BatchIngestResult",
    "FinancialSummary",
    "IngestResult",
    "IngestionService",
    "QueryEngine",
    "similarity_from_distance",
]
