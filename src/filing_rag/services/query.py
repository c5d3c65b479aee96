from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from filing_rag.embeddings import EmbeddingModel
from filing_rag.errors import QueryValidationError
from filing_rag.ingest.extraction import extract_financial_metrics, format_metrics_summary
from filing_rag.ingest.models import ChunkType
from filing_rag.telemetry import emit_retriever_event
from filing_rag.vectorstore import ChunkSearchResult, ChunkTable, Eq, Like, Predicate, all_of, any_of, row_to_result
from filing_rag.vectorstore.predicates import describe

LOGGER = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 100
FINANCIALS_FETCH_LIMIT = 20
FINANCIAL_KEYWORDS = ("revenue", "income", "profit", "assets", "cash", "liabilities")
FINANCIAL_CHUNK_TYPES = frozenset({ChunkType.FINANCIAL_STATEMENTS.value, ChunkType.BUSINESS.value})


@dataclass(slots=True)
class FinancialSummary:
    """Best-effort financial metrics for a company, with supporting chunks."""

    company_name: str
    metrics: Dict[str, str] = field(default_factory=dict)
    chunks: List[ChunkSearchResult] = field(default_factory=list)
    summary_text: str = ""
    include_context: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Render the summary; chunk bodies are included only on request."""

        chunks = [chunk.to_dict() for chunk in self.chunks]
        return {
            "company_name": self.company_name,
            "financial_summary": dict(self.metrics),
            "summary": self.summary_text,
            "financial_chunks": chunks if self.include_context else len(chunks),
            "context": chunks if self.include_context else None,
        }


def similarity_from_distance(distance: Optional[float]) -> Optional[float]:
    """Convert a cosine distance into a similarity score in ``[-1, 1]``."""

    if distance is None:
        return None
    return max(-1.0, min(1.0, 1.0 - distance))


def company_predicate(company_filter: str) -> Predicate:
    return any_of(Like("company_name", company_filter), Eq("ticker_symbol", company_filter.upper()))


def validate_query(query: Any, limit: Any) -> None:
    if not isinstance(query, str) or not query.strip():
        raise QueryValidationError("Query parameter is required and must be a string")
    if isinstance(limit, bool) or not isinstance(limit, int) or not MIN_LIMIT <= limit <= MAX_LIMIT:
        raise QueryValidationError(f"Limit must be between {MIN_LIMIT} and {MAX_LIMIT}")


def is_financial_chunk(result: ChunkSearchResult) -> bool:
    if result.chunk_type in FINANCIAL_CHUNK_TYPES:
        return True
    content = result.content.lower()
    return any(keyword in content for keyword in FINANCIAL_KEYWORDS)


class QueryEngine:
    """Read-only query layer over a :class:`ChunkTable`."""

    def __init__(self, table: ChunkTable, embedder: EmbeddingModel) -> None:
        self.table = table
        self.embedder = embedder

    def search(
        self,
        query: str,
        limit: int = 5,
        company_filter: Optional[str] = None,
        chunk_type_filter: Optional[str] = None,
    ) -> List[ChunkSearchResult]:
        """Return up to *limit* chunks nearest to *query*, best first."""

        validate_query(query, limit)
        if chunk_type_filter is not None:
            try:
                chunk_type_filter = ChunkType(chunk_type_filter).value
            except ValueError as exc:
                raise QueryValidationError(f"Unknown chunk type: {chunk_type_filter}") from exc

        predicate = all_of(
            company_predicate(company_filter) if company_filter else None,
            Eq("chunk_type", chunk_type_filter) if chunk_type_filter else None,
        )

        started = time.perf_counter()
        vector = self.embedder.embed(query)
        results = self.table.search(vector, limit, predicate)
        for result in results:
            result.similarity_score = similarity_from_distance(result.distance)

        emit_retriever_event(
            query=query,
            limit=limit,
            predicate=describe(predicate),
            results=[{"id": result.id, "score": result.similarity_score} for result in results],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return results

    def company_financials(self, company_name: str, include_context: bool = False) -> FinancialSummary:
        """Collect financial chunks for a company and extract display metrics.

        The company filter and chunk selection favour recall; metrics that do
        not appear in the selected chunks are omitted.
        """

        if not isinstance(company_name, str) or not company_name.strip():
            raise QueryValidationError("Company name is required and must be a string")

        query = f"{company_name} revenue financial statements income profit assets cash liabilities equity"
        results = self.search(query, FINANCIALS_FETCH_LIMIT, company_filter=company_name)
        chunks = [result for result in results if is_financial_chunk(result)]
        metrics = extract_financial_metrics(" ".join(chunk.content for chunk in chunks))
        LOGGER.info(
            "Financial summary for %s: %s chunks, metrics=%s",
            company_name,
            len(chunks),
            sorted(metrics),
        )
        return FinancialSummary(
            company_name=company_name,
            metrics=metrics,
            chunks=chunks,
            summary_text=format_metrics_summary(metrics),
            include_context=include_context,
        )

    def list_companies(self) -> List[Dict[str, str]]:
        """Return distinct companies keyed by ticker, falling back to name."""

        companies: Dict[str, Dict[str, str]] = {}
        for row in self.table.scan(["company_name", "ticker_symbol"]):
            ticker = row.get("ticker_symbol") or ""
            name = row.get("company_name") or ""
            key = ticker or name
            if key not in companies:
                companies[key] = {"company_name": name, "ticker_symbol": ticker}
        return list(companies.values())

    def chunks_for_ticker(self, ticker: str, limit: int = 10) -> List[ChunkSearchResult]:
        if limit < MIN_LIMIT:
            raise QueryValidationError(f"Limit must be at least {MIN_LIMIT}")
        rows = self.table.scan(predicate=Eq("ticker_symbol", ticker.upper()), limit=limit)
        return [row_to_result(row) for row in rows]

    def stats(self) -> Dict[str, Any]:
        rows = self.table.scan(["company_name", "ticker_symbol", "chunk_type"])
        companies: Counter[str] = Counter()
        chunk_types: Counter[str] = Counter()
        for row in rows:
            chunk_types[row.get("chunk_type") or ChunkType.GENERAL.value] += 1
            companies[row.get("ticker_symbol") or row.get("company_name") or ""] += 1
        return {
            "total_chunks": len(rows),
            "unique_companies": len(companies),
            "chunk_types": dict(chunk_types),
            "companies": dict(companies),
        }
