"""FastAPI application factory for the retrieval API.

Run it through ``filing-rag serve`` or, without the CLI, with
``uvicorn --factory filing_rag.main:create_configured_app``.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from filing_rag import __version__
from filing_rag.api import router
from filing_rag.config import Settings
from filing_rag.embeddings import EmbeddingModel
from filing_rag.logging_config import configure_logging
from filing_rag.services.query import QueryEngine
from filing_rag.telemetry import emit_app_startup_event, emit_exception
from filing_rag.vectorstore import ChunkTable, VectorStoreUnavailableError, create_chunk_table

LOGGER = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(messages) or "Invalid request"


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"success": False, "error": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
        emit_exception(module=__name__, error=exc)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    *,
    table: Optional[ChunkTable] = None,
    embedder: Optional[EmbeddingModel] = None,
) -> FastAPI:
    """Build the retrieval API.

    The chunk table and embedding model are created at startup unless given,
    and live on ``app.state`` for the lifetime of the application.  A missing
    table is fatal: the service refuses to start before documents have been
    ingested.
    """

    settings = settings or Settings.from_env()
    app = FastAPI(title="Filing RAG API", version=__version__)
    app.state.settings = settings
    app.state.table = None
    app.state.query_engine = None
    app.include_router(router)
    _register_exception_handlers(app)

    @app.on_event("startup")
    def _open_storage() -> None:
        chunk_table = table or create_chunk_table(settings)
        try:
            if not chunk_table.is_open:
                chunk_table.open()
        except VectorStoreUnavailableError as error:
            LOGGER.error(
                "Failed to connect to vector store table %s; make sure documents have been ingested: %s",
                chunk_table.name,
                error,
            )
            raise
        model = embedder or EmbeddingModel.from_settings(settings)
        app.state.table = chunk_table
        app.state.query_engine = QueryEngine(chunk_table, model)
        emit_app_startup_event(
            table=chunk_table.name,
            backend=type(chunk_table.store).__name__,
            embedding_model=model.model_name,
        )
        LOGGER.info("Retrieval API ready on table %s", chunk_table.name)

    return app


def create_configured_app() -> FastAPI:
    """Configure logging from the environment, then build the app."""

    settings = Settings.from_env()
    configure_logging(settings.log_dir)
    return create_app(settings)
