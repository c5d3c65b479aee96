from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from filing_rag.embeddings import EmbeddingModel
from filing_rag.errors import IngestionError
from filing_rag.ingest.embedding_pipeline import ChunkEmbeddingPipeline
from filing_rag.ingest.format_detection import DocumentFormatDetector
from filing_rag.ingest.pacing import RateLimitPolicy
from filing_rag.ingest.pipeline import IngestPipeline
from filing_rag.ingest.reader import DocumentReader
from filing_rag.logging_config import AUDIT_LOGGER_NAME
from filing_rag.telemetry import emit_exception, emit_ingest_event, traced_duration
from filing_rag.vectorstore import ChunkTable

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


@dataclass(slots=True)
class IngestResult:
    """Outcome of ingesting a single document."""

    source_file: str
    company_name: Optional[str] = None
    ticker: Optional[str] = None
    chunk_count: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class BatchIngestResult:
    """Outcome of ingesting every document of a directory."""

    results: List[IngestResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[IngestResult]:
        return [result for result in self.results if result.succeeded]

    @property
    def failed(self) -> List[IngestResult]:
        return [result for result in self.results if not result.succeeded]

    @property
    def total_chunks(self) -> int:
        return sum(result.chunk_count for result in self.results)


class IngestionService:
    """Turn filings on disk into embedded chunks stored in a :class:`ChunkTable`.

    Documents are processed strictly one after another; every document is
    written to storage in a single batch once all of its chunks are embedded.
    """

    def __init__(
        self,
        table: ChunkTable,
        embedder: EmbeddingModel,
        *,
        reader: Optional[DocumentReader] = None,
        pipeline: Optional[IngestPipeline] = None,
        policy: Optional[RateLimitPolicy] = None,
        replace_existing: bool = True,
    ) -> None:
        self.table = table
        self.embedder = embedder
        self.reader = reader or DocumentReader()
        self.pipeline = pipeline or IngestPipeline()
        self.policy = policy or RateLimitPolicy()
        self.embedding_pipeline = ChunkEmbeddingPipeline(embedder, self.policy)
        self.replace_existing = replace_existing

    def ensure_table(self) -> ChunkTable:
        if not self.table.is_open:
            self.table.open_or_create(self.embedder.dimension)
        return self.table

    def ingest_file(self, path: str | Path) -> IngestResult:
        """Read, chunk, embed and persist one document."""

        path = Path(path)
        try:
            document = self.reader.read(path)
        except Exception as error:
            raise IngestionError(f"Failed to read {path.name}", source_file=path.name, cause=error) from error
        return self.ingest_text(document.text, document.source_file, page_offsets=document.page_offsets)

    def ingest_text(
        self,
        text: str,
        source_file: str,
        *,
        page_offsets: Optional[Sequence[int]] = None,
    ) -> IngestResult:
        """Ingest already extracted document text."""

        started = time.perf_counter()
        emit_ingest_event(
            "ingest.file.start",
            file_name=source_file,
            pages=len(page_offsets) if page_offsets else None,
        )
        try:
            self.ensure_table()
            prepared = self.pipeline.prepare(text, source_file, page_offsets)
            chunks = self.embedding_pipeline.run(prepared.chunks)
            if self.replace_existing:
                removed = self.table.replace_source(source_file, chunks)
                if removed:
                    LOGGER.info("Removed %s stale chunks for %s", removed, source_file)
            else:
                self.table.add_chunks(chunks)
        except Exception as error:
            emit_ingest_event(
                "ingest.file.error",
                file_name=source_file,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            raise IngestionError(f"Failed to ingest {source_file}: {error}", source_file=source_file, cause=error) from error

        duration = time.perf_counter() - started
        company = prepared.company_info
        emit_ingest_event(
            "ingest.file.complete",
            file_name=source_file,
            company=company.name,
            pages=len(page_offsets) if page_offsets else None,
            chunks=len(chunks),
            duration_ms=duration * 1000.0,
        )
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "file_name": source_file,
                "company_name": company.name,
                "ticker": company.ticker,
                "chunk_count": len(chunks),
            }
        )
        return IngestResult(
            source_file=source_file,
            company_name=company.name,
            ticker=company.ticker,
            chunk_count=len(chunks),
            duration_seconds=duration,
        )

    def ingest_directory(self, directory: str | Path) -> BatchIngestResult:
        """Ingest every supported document in *directory*, in name order.

        A failing document is logged and recorded; the remaining documents are
        still processed.
        """

        directory = Path(directory)
        if not directory.is_dir():
            raise IngestionError(f"Not a directory: {directory}")

        files = sorted(
            (entry for entry in directory.iterdir() if entry.is_file() and DocumentFormatDetector.is_supported(entry)),
            key=lambda entry: entry.name,
        )
        LOGGER.info("Found %s documents to ingest in %s", len(files), directory)

        batch = BatchIngestResult()
        with traced_duration("ingest.directory", logger=LOGGER, directory=str(directory), documents=len(files)):
            for index, path in enumerate(files):
                if index:
                    self.policy.pause_between_documents()
                LOGGER.info("Processing %s (%s/%s)", path.name, index + 1, len(files))
                started = time.perf_counter()
                try:
                    result = self.ingest_file(path)
                except IngestionError as error:
                    LOGGER.exception("Error processing %s", path.name)
                    emit_exception(
                        module=f"{__name__}.ingest_directory",
                        error=error,
                        suggestion="Check the document and the embedding backend, then re-run ingestion",
                    )
                    result = IngestResult(
                        source_file=path.name,
                        duration_seconds=time.perf_counter() - started,
                        error=str(error),
                    )
                batch.results.append(result)

        LOGGER.info(
            "Ingestion complete: %s succeeded, %s failed, %s chunks",
            len(batch.succeeded),
            len(batch.failed),
            batch.total_chunks,
        )
        return batch
