"""API router exposing the retrieval endpoints used by downstream agents."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from filing_rag.errors import QueryValidationError
from filing_rag.ingest.models import ChunkType
from filing_rag.services.query import MAX_LIMIT, MIN_LIMIT, QueryEngine
from filing_rag.telemetry import emit_exception
from filing_rag.vectorstore import VectorStoreUnavailableError

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["retrieval"])


class QueryRequest(BaseModel):
    """Request body accepted by the vector search endpoint."""

    query: str = Field(..., description="Natural-language text to search for.")
    limit: int = Field(5, ge=MIN_LIMIT, le=MAX_LIMIT, description="Maximum number of chunks to return.")
    company_filter: Optional[str] = Field(
        None, description="Company name substring or ticker symbol to restrict results to."
    )
    chunk_type_filter: Optional[ChunkType] = Field(None, description="Restrict results to one chunk type.")


class CompanyFinancialsRequest(BaseModel):
    company_name: str = Field(..., description="Company name or ticker to summarise.")
    include_context: bool = Field(False, description="Return the supporting chunks as well.")


def error_response(status_code: int, message: str, meta: Optional[dict[str, Any]] = None) -> JSONResponse:
    payload: dict[str, Any] = {"success": False, "error": message}
    if meta is not None:
        payload["meta"] = meta
    return JSONResponse(status_code=status_code, content=payload)


def get_query_engine(request: Request) -> QueryEngine:
    engine = getattr(request.app.state, "query_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return engine


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _failure(error: Exception, *, context: str, started: Optional[float] = None) -> JSONResponse:
    meta = {"processing_time_ms": _elapsed_ms(started)} if started is not None else None
    if isinstance(error, QueryValidationError):
        return error_response(400, str(error), meta)
    if isinstance(error, VectorStoreUnavailableError):
        LOGGER.error("Vector store unavailable during %s: %s", context, error)
        return error_response(503, f"Vector store unavailable: {error}", meta)
    LOGGER.exception("Unhandled error during %s", context)
    emit_exception(module=f"{__name__}.{context.replace(' ', '_')}", error=error)
    return error_response(500, f"Internal server error during {context}", meta)


@router.get("/health")
def health(request: Request) -> dict[str, Any]:
    """Liveness probe reporting whether the chunk table is open."""

    table = getattr(request.app.state, "table", None)
    return {
        "success": True,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "database_connected": bool(table is not None and table.is_open),
    }


@router.post("/api/query", response_model=None)
def query_chunks(
    request: QueryRequest,
    engine: QueryEngine = Depends(get_query_engine),
) -> Any:
    """Vector search over stored chunks with optional filters."""

    started = time.perf_counter()
    try:
        results = engine.search(
            request.query,
            limit=request.limit,
            company_filter=request.company_filter,
            chunk_type_filter=request.chunk_type_filter.value if request.chunk_type_filter else None,
        )
    except Exception as error:
        return _failure(error, context="query processing", started=started)

    return {
        "success": True,
        "data": [result.to_dict() for result in results],
        "meta": {
            "query": request.query,
            "results_count": len(results),
            "processing_time_ms": _elapsed_ms(started),
        },
    }


@router.post("/api/company/financials", response_model=None)
def company_financials(
    request: CompanyFinancialsRequest,
    engine: QueryEngine = Depends(get_query_engine),
) -> Any:
    """Summarise the financial metrics found for a company."""

    started = time.perf_counter()
    try:
        summary = engine.company_financials(request.company_name, include_context=request.include_context)
    except Exception as error:
        return _failure(error, context="financials processing", started=started)

    return {
        "success": True,
        "data": summary.to_dict(),
        "meta": {
            "query": f"Financial data for {request.company_name}",
            "results_count": len(summary.chunks),
            "processing_time_ms": _elapsed_ms(started),
        },
    }


@router.get("/api/companies", response_model=None)
def list_companies(engine: QueryEngine = Depends(get_query_engine)) -> Any:
    try:
        companies = engine.list_companies()
    except Exception as error:
        return _failure(error, context="company listing")
    return {"success": True, "data": {"companies": companies, "total_count": len(companies)}}


@router.get("/api/company/{ticker}", response_model=None)
def company_by_ticker(
    ticker: str,
    limit: int = Query(10, ge=1),
    engine: QueryEngine = Depends(get_query_engine),
) -> Any:
    """Return stored chunks for a ticker symbol."""

    try:
        chunks = engine.chunks_for_ticker(ticker, limit=limit)
    except Exception as error:
        return _failure(error, context="company lookup")
    if not chunks:
        return error_response(404, f"No data found for company with ticker: {ticker}")
    return {
        "success": True,
        "data": {
            "ticker": ticker,
            "chunks": [chunk.to_dict(include_score=False) for chunk in chunks],
            "total_chunks": len(chunks),
        },
    }


@router.get("/api/stats", response_model=None)
def database_stats(engine: QueryEngine = Depends(get_query_engine)) -> Any:
    try:
        stats = engine.stats()
    except Exception as error:
        return _failure(error, context="stats collection")
    return {"success": True, "data": stats}
