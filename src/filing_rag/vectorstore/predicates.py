"""Boolean filter predicates over named row fields.

Predicates are evaluated directly against row dictionaries by the in-memory
store and translated into Chroma ``where`` clauses where Chroma can express
them (metadata equality, ``$and``, ``$or``).  Substring matches have no
metadata equivalent in Chroma and are evaluated in Python.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

# Fields that Chroma keeps outside the metadata dictionary.
_NON_METADATA_FIELDS = frozenset({"id", "content", "vector"})


class Predicate:
    """Base class for filter predicates."""

    def matches(self, row: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def to_where(self) -> Optional[Dict[str, Any]]:
        """Return an equivalent Chroma ``where`` clause, or ``None``."""

        return None


@dataclass(frozen=True)
class Eq(Predicate):
    field: str
    value: Any

    def matches(self, row: Mapping[str, Any]) -> bool:
        return row.get(self.field) == self.value

    def to_where(self) -> Optional[Dict[str, Any]]:
        if self.field in _NON_METADATA_FIELDS:
            return None
        return {self.field: {"$eq": self.value}}

    def __str__(self) -> str:
        return f"{self.field} = '{self.value}'"


@dataclass(frozen=True)
class Like(Predicate):
    """Case-sensitive substring match, the ``LIKE '%value%'`` of SQL."""

    field: str
    substring: str

    def matches(self, row: Mapping[str, Any]) -> bool:
        value = row.get(self.field)
        return isinstance(value, str) and self.substring in value

    def __str__(self) -> str:
        return f"{self.field} LIKE '%{self.substring}%'"


@dataclass(frozen=True)
class And(Predicate):
    clauses: Tuple[Predicate, ...]

    def matches(self, row: Mapping[str, Any]) -> bool:
        return all(clause.matches(row) for clause in self.clauses)

    def to_where(self) -> Optional[Dict[str, Any]]:
        wheres = [clause.to_where() for clause in self.clauses]
        if any(where is None for where in wheres):
            return None
        if len(wheres) == 1:
            return wheres[0]
        return {"$and": wheres}

    def __str__(self) -> str:
        return " AND ".join(f"({clause})" for clause in self.clauses)


@dataclass(frozen=True)
class Or(Predicate):
    clauses: Tuple[Predicate, ...]

    def matches(self, row: Mapping[str, Any]) -> bool:
        return any(clause.matches(row) for clause in self.clauses)

    def to_where(self) -> Optional[Dict[str, Any]]:
        wheres = [clause.to_where() for clause in self.clauses]
        if any(where is None for where in wheres):
            return None
        if len(wheres) == 1:
            return wheres[0]
        return {"$or": wheres}

    def __str__(self) -> str:
        return " OR ".join(str(clause) for clause in self.clauses)


def all_of(*clauses: Optional[Predicate]) -> Optional[Predicate]:
    """Conjunction of the given clauses, skipping ``None``."""

    present = tuple(clause for clause in clauses if clause is not None)
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return And(present)


def any_of(*clauses: Predicate) -> Predicate:
    if len(clauses) == 1:
        return clauses[0]
    return Or(tuple(clauses))


def describe(predicate: Optional[Predicate]) -> Optional[str]:
    return str(predicate) if predicate is not None else None
