"""Environment driven configuration."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "company_documents"


def _str_from_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(slots=True)
class Settings:
    """Runtime settings for the ingestion and query services."""

    vector_store: str = "chroma"
    vector_db_path: str = "vector_db"
    table_name: str = DEFAULT_TABLE_NAME
    embedding_backend: str = "sentence-transformers"
    embedding_model: str | None = None
    embedding_device: str | None = None
    embedding_dimension: int = 384
    openai_api_key: str | None = None
    call_delay: float = 0.1
    document_delay: float = 1.0
    max_retries: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    max_chunk_chars: int = 1000
    min_section_chars: int = 100
    port: int = 3000
    log_dir: str = "logs"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            vector_store=_str_from_env("VECTOR_STORE", "chroma").lower(),
            vector_db_path=_str_from_env("VECTOR_DB_PATH", "vector_db"),
            table_name=_str_from_env("VECTOR_TABLE_NAME", DEFAULT_TABLE_NAME),
            embedding_backend=_str_from_env("EMBEDDING_BACKEND", "sentence-transformers").lower(),
            embedding_model=os.getenv("EMBEDDING_MODEL") or None,
            embedding_device=os.getenv("EMBEDDING_DEVICE") or None,
            embedding_dimension=_int_from_env("EMBEDDING_DIMENSION", 384),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            call_delay=_float_from_env("INGEST_CALL_DELAY", 0.1),
            document_delay=_float_from_env("INGEST_DOCUMENT_DELAY", 1.0),
            max_retries=_int_from_env("INGEST_MAX_RETRIES", 3),
            initial_backoff=_float_from_env("INGEST_INITIAL_BACKOFF", 1.0),
            max_backoff=_float_from_env("INGEST_MAX_BACKOFF", 30.0),
            max_chunk_chars=_int_from_env("CHUNK_MAX_CHARS", 1000),
            min_section_chars=_int_from_env("CHUNK_MIN_SECTION_CHARS", 100),
            port=_int_from_env("PORT", 3000),
            log_dir=_str_from_env("LOG_DIR", "logs"),
        )
