"""Simple in-memory vector store for tests and offline development."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .errors import TableNotFoundError
from .predicates import Predicate

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _MemoryTable:
    """Internal representation of a table: its rows plus creation metadata."""

    name: str
    dimension: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    rows: List[Dict[str, Any]] = field(default_factory=list)


class InMemoryVectorStore:
    """A minimal in-memory table store ranking rows by cosine distance."""

    def __init__(self) -> None:
        self._tables: Dict[str, _MemoryTable] = {}

    def has_table(self, name: str) -> bool:
        return name in self._tables

    def create_table(
        self,
        name: str,
        sample_rows: Sequence[Mapping[str, Any]],
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Create a table whose vector width is taken from *sample_rows*."""

        if name in self._tables:
            raise ValueError(f"Table '{name}' already exists")
        if not sample_rows:
            raise ValueError("At least one sample row is required to define the schema")
        dimension = len(sample_rows[0]["vector"])
        self._tables[name] = _MemoryTable(name=name, dimension=dimension, metadata=dict(metadata or {}))
        self.insert(name, sample_rows)

    def open_table(self, name: str) -> Dict[str, Any]:
        """Return the creation metadata of an existing table."""

        table = self._get(name)
        return {**table.metadata, "dimension": table.dimension}

    def insert(self, name: str, rows: Iterable[Mapping[str, Any]]) -> None:
        table = self._get(name)
        prepared = []
        for row in rows:
            vector = [float(value) for value in row["vector"]]
            if len(vector) != table.dimension:
                raise ValueError(
                    f"Vector dimension {len(vector)} does not match table dimension {table.dimension}"
                )
            prepared.append({**row, "vector": vector})
        replaced = {row["id"]: row for row in prepared}
        table.rows = [replaced.pop(row["id"], row) for row in table.rows]
        table.rows.extend(replaced.values())

    def delete(self, name: str, predicate: Predicate) -> int:
        table = self._get(name)
        kept = [row for row in table.rows if not predicate.matches(row)]
        removed = len(table.rows) - len(kept)
        table.rows = kept
        return removed

    def search(
        self,
        name: str,
        vector: Sequence[float],
        limit: int,
        predicate: Optional[Predicate] = None,
    ) -> List[Dict[str, Any]]:
        """Return up to *limit* rows closest to *vector*, with ``_distance``."""

        if limit <= 0:
            return []
        table = self._get(name)
        if len(vector) != table.dimension:
            raise ValueError(
                f"Query vector dimension {len(vector)} does not match table dimension {table.dimension}"
            )

        scored: List[tuple[float, Dict[str, Any]]] = []
        for row in table.rows:
            if predicate is not None and not predicate.matches(row):
                continue
            scored.append((_cosine_distance(vector, row["vector"]), row))

        scored.sort(key=lambda item: item[0])
        results = []
        for distance, row in scored[:limit]:
            result = {key: value for key, value in row.items() if key != "vector"}
            result["_distance"] = distance
            results.append(result)
        return results

    def scan(
        self,
        name: str,
        fields: Sequence[str],
        predicate: Optional[Predicate] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        table = self._get(name)
        results: List[Dict[str, Any]] = []
        for row in table.rows:
            if predicate is not None and not predicate.matches(row):
                continue
            results.append({key: row.get(key) for key in fields})
            if limit is not None and len(results) >= limit:
                break
        return results

    def count(self, name: str) -> int:
        return len(self._get(name).rows)

    def _get(self, name: str) -> _MemoryTable:
        table = self._tables.get(name)
        if table is None:
            raise TableNotFoundError(name)
        return table


def _cosine_distance(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    if len(vec_a) != len(vec_b):
        raise ValueError("Vectors must be of the same dimension")
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 1.0
    return 1.0 - dot / (norm_a * norm_b)


__all__ = ["InMemoryVectorStore"]
