"""Errors raised by chunk storage backends."""
from __future__ import annotations


class VectorStoreUnavailableError(RuntimeError):
    """The backend could not be reached, or rejected an operation."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class TableNotFoundError(VectorStoreUnavailableError):
    """No table with the requested name has been created."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Table '{name}' does not exist")
        self.table_name = name
