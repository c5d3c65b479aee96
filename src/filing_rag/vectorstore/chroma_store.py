"""Chroma vector store adapter."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import chromadb

from .errors import TableNotFoundError, VectorStoreUnavailableError
from .predicates import Predicate

LOGGER = logging.getLogger(__name__)

# Row keys Chroma stores outside the metadata dictionary.
_ID = "id"
_CONTENT = "content"
_VECTOR = "vector"


class ChromaStore:
    """Adapter exposing a Chroma database through the table contract.

    Each table is a Chroma collection using the cosine distance.  Predicates
    that Chroma cannot express are evaluated in Python over the candidate set.
    """

    def __init__(
        self,
        persist_dir: str | Path | None = None,
        *,
        client: Any = None,
    ) -> None:
        self.persist_dir = Path(persist_dir) if persist_dir is not None else None
        try:
            if client is not None:
                self._client = client
            elif self.persist_dir is not None:
                self.persist_dir.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(self.persist_dir))
            else:
                self._client = chromadb.EphemeralClient()
        except Exception as exc:  # pragma: no cover - depends on chromadb runtime
            raise VectorStoreUnavailableError(
                "Failed to initialise Chroma client",
                cause=exc,
            ) from exc
        self._collections: Dict[str, Any] = {}

    def has_table(self, name: str) -> bool:
        if name in self._collections:
            return True
        for item in self._client.list_collections():
            # Chroma >= 0.6 lists names, older releases list collection objects.
            if getattr(item, "name", item) == name:
                return True
        return False

    def create_table(
        self,
        name: str,
        sample_rows: Sequence[Mapping[str, Any]],
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not sample_rows:
            raise ValueError("At least one sample row is required to define the schema")
        collection_metadata = {"hnsw:space": "cosine", **(metadata or {})}
        collection_metadata.setdefault("dimension", len(sample_rows[0][_VECTOR]))
        self._collections[name] = self._client.create_collection(name=name, metadata=collection_metadata)
        self.insert(name, sample_rows)

    def open_table(self, name: str) -> Dict[str, Any]:
        return dict(self._collection(name).metadata or {})

    def insert(self, name: str, rows: Iterable[Mapping[str, Any]]) -> None:
        collection = self._collection(name)
        ids: List[str] = []
        documents: List[str] = []
        embeddings: List[List[float]] = []
        metadatas: List[Dict[str, Any]] = []
        for row in rows:
            ids.append(str(row[_ID]))
            documents.append(str(row[_CONTENT]))
            embeddings.append([float(value) for value in row[_VECTOR]])
            metadatas.append(_row_metadata(row))
        if not ids:
            return
        collection.upsert(ids=ids, embeddings=embeddings, documents=documents, metadatas=metadatas)

    def delete(self, name: str, predicate: Predicate) -> int:
        collection = self._collection(name)
        ids = [row[_ID] for row in self.scan(name, [_ID, _CONTENT], predicate)]
        if ids:
            collection.delete(ids=ids)
        return len(ids)

    def search(
        self,
        name: str,
        vector: Sequence[float],
        limit: int,
        predicate: Optional[Predicate] = None,
    ) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        collection = self._collection(name)
        total = collection.count()
        if total == 0:
            return []

        where = predicate.to_where() if predicate is not None else None
        post_filter = predicate is not None and where is None
        n_results = total if post_filter else min(limit, total)

        kwargs: Dict[str, Any] = {
            "query_embeddings": [[float(value) for value in vector]],
            "n_results": n_results,
            "include": ["documents", "metadatas", "distances"],
        }
        if where is not None:
            kwargs["where"] = where
        result = collection.query(**kwargs)

        ids = (result.get("ids") or [[]])[0]
        documents = (result.get("documents") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        rows: List[Dict[str, Any]] = []
        for row_id, document, metadata, distance in zip(ids, documents, metadatas, distances):
            row = _build_row(row_id, document, metadata)
            if post_filter and not predicate.matches(row):
                continue
            row["_distance"] = float(distance) if distance is not None else None
            rows.append(row)
            if len(rows) >= limit:
                break
        return rows

    def scan(
        self,
        name: str,
        fields: Sequence[str],
        predicate: Optional[Predicate] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        collection = self._collection(name)
        where = predicate.to_where() if predicate is not None else None
        post_filter = predicate is not None and where is None

        kwargs: Dict[str, Any] = {"include": ["documents", "metadatas"]}
        if where is not None:
            kwargs["where"] = where
        if limit is not None and not post_filter:
            kwargs["limit"] = limit
        result = collection.get(**kwargs)

        rows: List[Dict[str, Any]] = []
        for row_id, document, metadata in zip(
            result.get("ids") or [],
            result.get("documents") or [],
            result.get("metadatas") or [],
        ):
            row = _build_row(row_id, document, metadata)
            if post_filter and not predicate.matches(row):
                continue
            rows.append({key: row.get(key) for key in fields})
            if limit is not None and len(rows) >= limit:
                break
        return rows

    def count(self, name: str) -> int:
        return int(self._collection(name).count())

    def _collection(self, name: str) -> Any:
        collection = self._collections.get(name)
        if collection is None:
            if not self.has_table(name):
                raise TableNotFoundError(name)
            collection = self._client.get_collection(name=name)
            self._collections[name] = collection
        return collection


def _row_metadata(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        key: value
        for key, value in row.items()
        if key not in (_ID, _CONTENT, _VECTOR) and value is not None
    }


def _build_row(row_id: str, document: Optional[str], metadata: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    row: Dict[str, Any] = dict(metadata or {})
    row[_ID] = row_id
    row[_CONTENT] = document or ""
    return row


__all__ = ["ChromaStore"]
