"""Data models used by the ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, List, Optional


class ChunkType(str, Enum):
    """Semantic category assigned to a chunk from its section heading."""

    BUSINESS = "business"
    RISK_FACTORS = "risk_factors"
    FINANCIAL_STATEMENTS = "financial_statements"
    GENERAL = "general"


@dataclass(slots=True)
class FinancialData:
    """Financial statement figures in absolute currency units.

    Every field is independently optional; a partially populated record is a
    normal extraction outcome.
    """

    revenue: Optional[int] = None
    gross_profit: Optional[int] = None
    operating_income: Optional[int] = None
    net_income: Optional[int] = None
    total_assets: Optional[int] = None
    cash: Optional[int] = None
    total_liabilities: Optional[int] = None
    long_term_debt: Optional[int] = None
    shareholders_equity: Optional[int] = None

    def as_dict(self) -> Dict[str, int]:
        """Return only the figures that were extracted."""

        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }

    def is_empty(self) -> bool:
        return not self.as_dict()


@dataclass(slots=True)
class CompanyInfo:
    """Company identity and financial snapshot recovered from a filing.

    ``None`` marks a field that was not found in the text.
    """

    name: Optional[str] = None
    ticker: Optional[str] = None
    industry: Optional[str] = None
    employees: Optional[int] = None
    headquarters: Optional[str] = None
    financial_data: Optional[FinancialData] = None


@dataclass(slots=True)
class ChunkMetadata:
    """Metadata attached to an individual chunk."""

    source_file: str
    page_number: Optional[int] = None
    section: Optional[str] = None


@dataclass(slots=True)
class DocumentChunk:
    """A bounded, typed span of filing text plus its embedding."""

    id: str
    company_name: str
    ticker_symbol: str
    content: str
    chunk_type: ChunkType
    metadata: ChunkMetadata
    vector: List[float] = field(default_factory=list)
