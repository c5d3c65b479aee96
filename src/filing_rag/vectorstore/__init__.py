"""Chunk storage on top of pluggable vector store backends."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from filing_rag.config import DEFAULT_TABLE_NAME, Settings
from filing_rag.ingest.models import ChunkMetadata, ChunkType, DocumentChunk
from filing_rag.telemetry import emit_vectorstore_event

from .errors import TableNotFoundError, VectorStoreUnavailableError
from .mock_store import InMemoryVectorStore
from .predicates import And, Eq, Like, Or, Predicate, all_of, any_of, describe

LOGGER = logging.getLogger(__name__)

SAMPLE_CHUNK_ID = "sample_chunk_id"

ROW_FIELDS = (
    "id",
    "chunk_id",
    "company_name",
    "ticker_symbol",
    "content",
    "chunk_type",
    "source_file",
    "page_number",
    "section",
)


class VectorStoreBackend(Protocol):
    """Table contract implemented by the storage backends."""

    def has_table(self, name: str) -> bool: ...

    def create_table(
        self, name: str, sample_rows: Sequence[Dict[str, Any]], *, metadata: Optional[Dict[str, Any]] = None
    ) -> None: ...

    def open_table(self, name: str) -> Dict[str, Any]: ...

    def insert(self, name: str, rows: Sequence[Dict[str, Any]]) -> None: ...

    def delete(self, name: str, predicate: Predicate) -> int: ...

    def search(
        self, name: str, vector: Sequence[float], limit: int, predicate: Optional[Predicate] = None
    ) -> List[Dict[str, Any]]: ...

    def scan(
        self,
        name: str,
        fields: Sequence[str],
        predicate: Optional[Predicate] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    def count(self, name: str) -> int: ...


@dataclass(slots=True)
class ChunkSearchResult:
    """A stored chunk returned from a search or lookup."""

    id: str
    company_name: str
    ticker_symbol: str
    content: str
    chunk_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    distance: Optional[float] = None
    similarity_score: Optional[float] = None

    def to_dict(self, *, include_score: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "company_name": self.company_name,
            "ticker_symbol": self.ticker_symbol,
            "content": self.content,
            "chunk_type": self.chunk_type,
            "metadata": dict(self.metadata),
        }
        if include_score:
            payload["similarity_score"] = self.similarity_score
        return payload


def storage_key(chunk: DocumentChunk) -> str:
    """Return the row id of a chunk, unique across source files."""

    seed = f"{chunk.metadata.source_file}:{chunk.id}"
    return uuid.uuid5(uuid.NAMESPACE_URL, seed).hex


def chunk_to_row(chunk: DocumentChunk) -> Dict[str, Any]:
    return {
        "id": storage_key(chunk),
        "chunk_id": chunk.id,
        "company_name": chunk.company_name,
        "ticker_symbol": chunk.ticker_symbol,
        "content": chunk.content,
        "chunk_type": ChunkType(chunk.chunk_type).value,
        "source_file": chunk.metadata.source_file,
        "page_number": chunk.metadata.page_number,
        "section": chunk.metadata.section,
        "vector": list(chunk.vector),
    }


def row_to_result(row: Dict[str, Any]) -> ChunkSearchResult:
    metadata: Dict[str, Any] = {"source_file": row.get("source_file") or ""}
    if row.get("page_number") is not None:
        metadata["page_number"] = int(row["page_number"])
    if row.get("section"):
        metadata["section"] = row["section"]
    distance = row.get("_distance")
    return ChunkSearchResult(
        id=str(row.get("chunk_id") or row.get("id") or ""),
        company_name=str(row.get("company_name") or ""),
        ticker_symbol=str(row.get("ticker_symbol") or ""),
        content=str(row.get("content") or ""),
        chunk_type=str(row.get("chunk_type") or ChunkType.GENERAL.value),
        metadata=metadata,
        distance=float(distance) if distance is not None else None,
    )


def _sample_chunk(dimension: int) -> DocumentChunk:
    vector = [0.0] * dimension
    vector[0] = 1.0
    return DocumentChunk(
        id=SAMPLE_CHUNK_ID,
        company_name="Sample Company",
        ticker_symbol="SMPL",
        content="This is a sample document chunk used for schema definition.",
        chunk_type=ChunkType.GENERAL,
        metadata=ChunkMetadata(source_file="sample.pdf", page_number=1, section="Sample Section"),
        vector=vector,
    )


class ChunkTable:
    """Storage client for document chunks.

    One instance wraps one backend table.  It is created explicitly and
    injected into the ingestion and query services; its lifetime is that of
    the owning application or CLI run.
    """

    def __init__(self, store: VectorStoreBackend, name: str = DEFAULT_TABLE_NAME) -> None:
        self.store = store
        self.name = name
        self.dimension: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.dimension is not None

    def open(self) -> "ChunkTable":
        """Open an existing table; raise :class:`TableNotFoundError` otherwise."""

        try:
            metadata = self.store.open_table(self.name)
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError(f"Failed to open table '{self.name}'", cause=exc) from exc
        dimension = metadata.get("dimension")
        self.dimension = int(dimension) if dimension is not None else 0
        LOGGER.info("Opened existing table %s", self.name)
        return self

    def open_or_create(self, dimension: int) -> "ChunkTable":
        """Open the table, creating it with vectors of *dimension* if absent.

        Creation inserts one sample record to fix the schema and vector width,
        then deletes it, leaving an empty table.
        """

        if dimension <= 0:
            raise ValueError("dimension must be a positive integer")
        try:
            exists = self.store.has_table(self.name)
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to probe vector store tables", cause=exc) from exc

        if exists:
            self.open()
            if self.dimension and self.dimension != dimension:
                raise VectorStoreUnavailableError(
                    f"Table '{self.name}' stores {self.dimension}-dimensional vectors, "
                    f"embedding model produces {dimension}"
                )
            self.dimension = dimension
            return self

        LOGGER.info("Creating new table %s", self.name)
        try:
            self.store.create_table(
                self.name,
                [chunk_to_row(_sample_chunk(dimension))],
                metadata={"dimension": dimension},
            )
            self.store.delete(self.name, Eq("chunk_id", SAMPLE_CHUNK_ID))
        except Exception as exc:
            raise VectorStoreUnavailableError(f"Failed to create table '{self.name}'", cause=exc) from exc
        self.dimension = dimension
        LOGGER.info("Created new table %s and removed sample record", self.name)
        return self

    def add_chunks(self, chunks: Sequence[DocumentChunk]) -> List[str]:
        """Persist embedded chunks in a single write and return their row ids."""

        if not chunks:
            return []
        for chunk in chunks:
            if not chunk.vector:
                raise ValueError(f"Chunk {chunk.id} has no embedding")
            if self.dimension and len(chunk.vector) != self.dimension:
                raise ValueError(
                    f"Chunk {chunk.id} has a {len(chunk.vector)}-dimensional vector, "
                    f"table expects {self.dimension}"
                )
        rows = [chunk_to_row(chunk) for chunk in chunks]
        try:
            self.store.insert(self.name, rows)
        except VectorStoreUnavailableError as error:
            emit_vectorstore_event("vectorstore.insert", table=self.name, count=len(rows), error=error)
            raise
        except Exception as exc:
            emit_vectorstore_event("vectorstore.insert", table=self.name, count=len(rows), error=exc)
            raise VectorStoreUnavailableError("Failed to insert chunks into vector store", cause=exc) from exc
        emit_vectorstore_event("vectorstore.insert", table=self.name, count=len(rows))
        return [row["id"] for row in rows]

    def delete_source(self, source_file: str) -> int:
        """Delete every chunk that came from *source_file*."""

        predicate = Eq("source_file", source_file)
        try:
            removed = self.store.delete(self.name, predicate)
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to delete chunks from vector store", cause=exc) from exc
        emit_vectorstore_event("vectorstore.delete", table=self.name, count=removed, predicate=describe(predicate))
        return removed

    def replace_source(self, source_file: str, chunks: Sequence[DocumentChunk]) -> int:
        """Store *chunks* as the current rows of *source_file*.

        The new batch is written first; rows of the same file that the batch
        does not overwrite are deleted afterwards.  A failed write leaves the
        previously stored rows untouched.  Returns the number of stale rows
        removed.
        """

        self.add_chunks(chunks)
        current = {chunk.id for chunk in chunks}
        stale = [
            row["chunk_id"]
            for row in self.scan(fields=("id", "chunk_id"), predicate=Eq("source_file", source_file))
            if row["chunk_id"] not in current
        ]
        if not stale:
            return 0

        predicate = And((Eq("source_file", source_file), any_of(*(Eq("chunk_id", chunk_id) for chunk_id in stale))))
        try:
            removed = self.store.delete(self.name, predicate)
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to delete chunks from vector store", cause=exc) from exc
        emit_vectorstore_event("vectorstore.delete", table=self.name, count=removed, predicate=describe(predicate))
        return removed

    def search(
        self,
        vector: Sequence[float],
        limit: int,
        predicate: Optional[Predicate] = None,
    ) -> List[ChunkSearchResult]:
        try:
            rows = self.store.search(self.name, vector, limit, predicate)
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError("Vector store query failed", cause=exc) from exc
        emit_vectorstore_event(
            "vectorstore.search", table=self.name, count=len(rows), predicate=describe(predicate)
        )
        return [row_to_result(row) for row in rows]

    def scan(
        self,
        fields: Sequence[str] = ROW_FIELDS,
        predicate: Optional[Predicate] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        try:
            return self.store.scan(self.name, fields, predicate, limit)
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError("Vector store scan failed", cause=exc) from exc

    def count(self) -> int:
        try:
            return self.store.count(self.name)
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError("Vector store count failed", cause=exc) from exc


def create_vector_store(settings: Settings) -> VectorStoreBackend:
    """Instantiate the backend selected by ``VECTOR_STORE``."""

    backend = settings.vector_store
    if backend == "memory":
        return InMemoryVectorStore()
    if backend == "chroma":
        from .chroma_store import ChromaStore

        return ChromaStore(settings.vector_db_path)
    raise ValueError(f"Unsupported VECTOR_STORE backend: {backend!r}")


def create_chunk_table(settings: Settings, store: Optional[VectorStoreBackend] = None) -> ChunkTable:
    """Build an unopened :class:`ChunkTable` for the configured backend."""

    return ChunkTable(store or create_vector_store(settings), settings.table_name)


__all__ = [
    "And",
    "ChunkSearchResult",
    "ChunkTable",
    "Eq",
    "InMemoryVectorStore",
    "Like",
    "Or",
    "Predicate",
    "ROW_FIELDS",
    "SAMPLE_CHUNK_ID",
    "TableNotFoundError",
    "VectorStoreBackend",
    "VectorStoreUnavailableError",
    "all_of",
    "any_of",
    "chunk_to_row",
    "create_chunk_table",
    "create_vector_store",
    "row_to_result",
    "storage_key",
]
