"""JSON logging for the CLI and the retrieval API.

Console output and the ingestion audit trail share one formatter: every record
becomes a single JSON object with ``ts``, ``level`` and ``module`` keys.  Dict
messages (as produced by :mod:`filing_rag.telemetry`) are merged into the
object, ``extra=`` fields are copied verbatim.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "filing_rag.ingest.audit"
AUDIT_LOG_FILE = "ingest_audit.log"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class MinimalJSONFormatter(logging.Formatter):
    """Render a record as one compact JSON line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        entry: dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "module": record.name,
        }

        if isinstance(record.msg, dict):
            entry.update(record.msg)
        else:
            text = record.getMessage()
            if text:
                entry["message"] = text

        if record.exc_info and "exc" not in entry:
            entry["exc_info"] = self.formatException(record.exc_info)

        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRIBUTES and not key.startswith("_")
        )
        return json.dumps(entry, ensure_ascii=False, default=str)


def build_logging_config(log_dir: Path, level: str = "INFO") -> dict[str, Any]:
    """Return the ``dictConfig`` mapping used by :func:`configure_logging`."""

    level = level.upper()
    server_loggers = {
        name: {"level": level, "handlers": ["console"], "propagate": False}
        for name in _SERVER_LOGGERS
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": MinimalJSONFormatter}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "json"},
            "audit_file": {
                "class": "logging.FileHandler",
                "filename": str(log_dir / AUDIT_LOG_FILE),
                "mode": "a",
                "encoding": "utf-8",
                "formatter": "json",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            AUDIT_LOGGER_NAME: {"level": "INFO", "handlers": ["audit_file"], "propagate": False},
            **server_loggers,
        },
    }


def configure_logging(log_dir: str | Path = "logs", level: str = "INFO") -> None:
    """Send all logs to stderr as JSON and ingestion audit entries to *log_dir*."""

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(directory, level))
