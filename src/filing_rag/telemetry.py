"""Structured lifecycle events for ingestion, storage and retrieval.

Every event is a dictionary logged through the standard logging machinery and
rendered as one JSON line by :class:`~filing_rag.logging_config.MinimalJSONFormatter`.
"""

from __future__ import annotations

import logging
import os
import platform
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterator, Optional

LOGGER = logging.getLogger("filing_rag.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "VECTOR_STORE",
    "VECTOR_DB_PATH",
    "VECTOR_TABLE_NAME",
    "EMBEDDING_BACKEND",
    "EMBEDDING_MODEL",
    "EMBEDDING_DEVICE",
    "EMBEDDING_DIMENSION",
    "OPENAI_API_KEY",
    "INGEST_CALL_DELAY",
    "INGEST_DOCUMENT_DELAY",
    "INGEST_MAX_RETRIES",
    "CHUNK_MAX_CHARS",
    "PORT",
)
_SECRET_KEYS = frozenset({"OPENAI_API_KEY"})


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Log ``{"step": ..., "details": ...}`` at *level* on *logger*."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, **payload}
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details

    exc_info = None
    if isinstance(exc, BaseException):
        event["exc"] = _format_exception(exc)
        exc_info = (type(exc), exc, exc.__traceback__)
    elif exc is not None:
        event["exc"] = str(exc)

    logger.log(logging.getLevelName(level.upper()), event, exc_info=exc_info)


def _env_snapshot() -> dict[str, Optional[str]]:
    snapshot: dict[str, Optional[str]] = {}
    for key in _ENV_KEYS_TO_LOG:
        value = os.getenv(key)
        if key in _SECRET_KEYS and value:
            value = "***"
        snapshot[key] = value
    return snapshot


def emit_app_startup_event(*, table: str, backend: str, embedding_model: str) -> None:
    details = {
        "table": table,
        "vector_store": backend,
        "embedding_model": embedding_model,
        "python": platform.python_version(),
        "pid": os.getpid(),
        "env": _env_snapshot(),
    }
    log_event(LOGGER, "app.startup", details=details)


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, errors: list[str] | None = None
) -> None:
    details = {
        "model": model,
        "count": count,
        "errors": errors or [],
        "per_item_ms": round(duration_ms / count, 3) if count else None,
    }
    log_event(
        LOGGER,
        "embeddings.compute",
        level="warning" if errors else "info",
        duration_ms=duration_ms,
        details=details,
    )


def emit_vectorstore_event(
    step: str,
    *,
    table: str,
    count: int,
    predicate: str | None = None,
    error: BaseException | None = None,
) -> None:
    log_event(
        LOGGER,
        step,
        level="error" if error else "info",
        details={"table": table, "count": count, "predicate": predicate},
        exc=error,
    )


def emit_retriever_event(
    *,
    query: str,
    limit: int,
    predicate: str | None,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "limit": limit,
        "predicate": predicate,
        "hits": len(results),
        "results": results,
    }
    log_event(LOGGER, "retriever.search", duration_ms=duration_ms, details=details)


def emit_ingest_event(
    step: str,
    *,
    file_name: str,
    company: str | None = None,
    pages: int | None = None,
    chunks: int | None = None,
    duration_ms: float | None = None,
    error: BaseException | None = None,
) -> None:
    details = {"file": file_name, "company": company, "pages": pages, "chunks": chunks}
    log_event(
        LOGGER,
        step,
        level="error" if error else "info",
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_exception(*, module: str, error: BaseException, suggestion: str | None = None) -> None:
    details: dict[str, Any] = {"module": module, "type": type(error).__name__}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(LOGGER, "exception", level="error", details=details, exc=error)


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    """Emit ``<step>.start`` and ``<step>.complete`` (or ``<step>.error``) events."""

    logger = logger or LOGGER
    started = time.perf_counter()
    log_event(logger, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(
            logger,
            f"{step}.error",
            level="error",
            duration_ms=(time.perf_counter() - started) * 1000.0,
            details=fields,
            exc=error,
        )
        raise
    log_event(logger, f"{step}.complete", duration_ms=(time.perf_counter() - started) * 1000.0, details=fields)


__all__ = [
    "emit_app_startup_event",
    "emit_embeddings_event",
    "emit_exception",
    "emit_ingest_event",
    "emit_retriever_event",
    "emit_vectorstore_event",
    "log_event",
    "traced_duration",
]
