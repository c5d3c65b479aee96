"""Decide how a filing on disk should be read."""
from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import Path
from typing import Optional


class DocumentFormat(str, Enum):
    PDF = "pdf"
    TXT = "txt"

    @property
    def suffix(self) -> str:
        return f".{self.value}"


_FORMATS_BY_MIME = {
    "application/pdf": DocumentFormat.PDF,
    "text/plain": DocumentFormat.TXT,
}
_FORMATS_BY_SUFFIX = {item.suffix: item for item in DocumentFormat}


class DocumentFormatDetector:
    """Map a file name, and optionally a MIME type, onto a :class:`DocumentFormat`."""

    @classmethod
    def detect(cls, file_name: str, mime_type: Optional[str] = None) -> DocumentFormat:
        guessed_type, _ = mimetypes.guess_type(file_name)
        for candidate in (mime_type, guessed_type):
            if candidate in _FORMATS_BY_MIME:
                return _FORMATS_BY_MIME[candidate]

        document_format = _FORMATS_BY_SUFFIX.get(Path(file_name).suffix.lower())
        if document_format is None:
            raise ValueError(f"Unsupported file format: {file_name}")
        return document_format

    @staticmethod
    def is_supported(path: Path) -> bool:
        return path.suffix.lower() in _FORMATS_BY_SUFFIX
