"""Command line entry point: ``filing-rag ingest`` and ``filing-rag serve``."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from filing_rag.config import Settings
from filing_rag.embeddings import EmbeddingModel
from filing_rag.errors import EmbeddingError, IngestionError
from filing_rag.ingest.pacing import RateLimitPolicy
from filing_rag.ingest.pipeline import IngestPipeline
from filing_rag.logging_config import configure_logging
from filing_rag.services.ingestion import BatchIngestResult, IngestionService, IngestResult
from filing_rag.vectorstore import VectorStoreUnavailableError, create_chunk_table

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="filing-rag", description="Financial filing ingestion and retrieval")
    parser.add_argument("--log-level", default="INFO", help="Root log level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest a filing or a directory of filings")
    ingest.add_argument("path", type=Path, help="PDF/TXT file or directory containing filings")
    ingest.add_argument(
        "--keep-existing",
        action="store_true",
        help="Keep previously stored chunks of re-ingested files that the new batch does not overwrite",
    )

    serve = subparsers.add_parser("serve", help="Run the retrieval API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None, help="Port to listen on (default: $PORT or 3000)")
    return parser


def _print_report(results: List[IngestResult]) -> None:
    for result in results:
        if result.succeeded:
            print(
                f"OK     {result.source_file}: {result.chunk_count} chunks "
                f"({result.company_name or 'unknown company'}, {result.duration_seconds:.1f}s)"
            )
        else:
            print(f"FAILED {result.source_file}: {result.error}")


def run_ingest(settings: Settings, path: Path, *, replace_existing: bool = True) -> int:
    try:
        embedder = EmbeddingModel.from_settings(settings)
    except EmbeddingError as error:
        LOGGER.error("Failed to initialise embedding backend: %s", error)
        return 2

    service = IngestionService(
        create_chunk_table(settings),
        embedder,
        pipeline=IngestPipeline.from_settings(settings),
        policy=RateLimitPolicy.from_settings(settings),
        replace_existing=replace_existing,
    )
    try:
        service.ensure_table()
        if path.is_dir():
            batch = service.ingest_directory(path)
        else:
            batch = BatchIngestResult()
            try:
                batch.results.append(service.ingest_file(path))
            except IngestionError as error:
                LOGGER.exception("Error processing %s", path.name)
                batch.results.append(IngestResult(source_file=path.name, error=str(error)))
    except (IngestionError, VectorStoreUnavailableError) as error:
        LOGGER.error("Ingestion aborted: %s", error)
        return 2

    _print_report(batch.results)
    print(
        f"{len(batch.succeeded)} succeeded, {len(batch.failed)} failed, "
        f"{batch.total_chunks} chunks stored in '{settings.table_name}'"
    )
    return 1 if batch.failed else 0


def run_serve(settings: Settings, host: str, port: Optional[int]) -> int:
    import uvicorn

    from filing_rag.main import create_app

    # log_config=None keeps the logging configured by main().
    uvicorn.run(create_app(settings), host=host, port=port or settings.port, log_config=None)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_dir, level=args.log_level.upper())

    if args.command == "ingest":
        return run_ingest(settings, args.path, replace_existing=not args.keep_existing)
    return run_serve(settings, args.host, args.port)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
