from __future__ import annotations

from typing import List, Optional

import pytest

from filing_rag.embeddings import EmbeddingModel
from filing_rag.errors import EmbeddingError
from filing_rag.ingest.models import ChunkMetadata, ChunkType, DocumentChunk
from filing_rag.ingest.pacing import RateLimitPolicy
from filing_rag.vectorstore import ChunkTable, InMemoryVectorStore

DIMENSION = 32


def make_filing(
    name: str = "ACME Widgets Inc",
    ticker: str = "ACME",
    revenue: str = "50,000",
    extra: str = "",
) -> str:
    """Build a small 10-K style filing with identity, business, risk and financial sections."""

    return (
        f"{name}\n"
        f"Ticker Symbol: {ticker}\n"
        "Industry: Industrial Manufacturing\n"
        "Employees: 12,500\n"
        "Headquarters: Springfield, Illinois\n"
        "\n"
        "PART I\n"
        "Item 1. Business\n"
        f"{name} designs and manufactures industrial widgets for customers worldwide. "
        "The company operates three plants. Its products serve the automotive and aerospace markets.\n"
        "\n"
        "Item 2. Risk Factors\n"
        "Our business depends on steel prices, which are volatile. "
        "Supply chain disruptions could delay shipments. "
        "Competition from overseas producers may reduce margins.\n"
        "\n"
        "Item 8. Financial Statements\n"
        f"Revenue ${revenue} Gross Profit $20,000 Operating Income $12,000 Net Income $9,000 "
        "Total Assets $150,000 Cash and Cash Equivalents $30,000 Total Liabilities $70,000 "
        "Long-term Debt $25,000 Shareholders' Equity $80,000.\n"
        f"{extra}"
    )


class RecordingEmbedder(EmbeddingModel):
    """Hash embedder that records every text it embeds and can fail on demand."""

    def __init__(self, dimension: int = DIMENSION, fail_on: Optional[str] = None, error: Exception | None = None):
        super().__init__("hash", dimension=dimension)
        self.calls: List[str] = []
        self.fail_on = fail_on
        self.error = error

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise self.error or EmbeddingError("embedding backend exploded")
        return super().embed(text)


@pytest.fixture
def embedder() -> RecordingEmbedder:
    return RecordingEmbedder()


@pytest.fixture
def memory_table() -> ChunkTable:
    return ChunkTable(InMemoryVectorStore(), "test_documents").open_or_create(DIMENSION)


@pytest.fixture
def no_pacing() -> RateLimitPolicy:
    return RateLimitPolicy.disabled()


@pytest.fixture
def make_chunk():
    def factory(
        chunk_id: str,
        content: str,
        *,
        company_name: str = "ACME Widgets Inc",
        ticker: str = "ACME",
        chunk_type: ChunkType = ChunkType.GENERAL,
        source_file: str = "acme.txt",
    ) -> DocumentChunk:
        return DocumentChunk(
            id=chunk_id,
            company_name=company_name,
            ticker_symbol=ticker,
            content=content,
            chunk_type=chunk_type,
            metadata=ChunkMetadata(source_file=source_file),
            vector=EmbeddingModel("hash", dimension=DIMENSION).embed(content),
        )

    return factory
