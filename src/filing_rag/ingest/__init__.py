"""Document ingestion: reading, fact extraction, chunking and embedding."""

from .chunking import ChunkingConfig, SectionChunker
from .extraction import FactExtractor, extract_company_info, extract_financial_metrics
from .models import ChunkMetadata, ChunkType, CompanyInfo, DocumentChunk, FinancialData
from .pipeline import IngestPipeline, PreparedDocument

__all__ = [
    "ChunkMetadata",
    "ChunkType",
    "ChunkingConfig",
    "CompanyInfo",
    "DocumentChunk",
    "FactExtractor",
    "FinancialData",
    "IngestPipeline",
    "PreparedDocument",
    "SectionChunker",
    "extract_company_info",
    "extract_financial_metrics",
]
