"""Readers turning filing documents into plain text."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from PyPDF2 import PdfReader

from .format_detection import DocumentFormat, DocumentFormatDetector
from .normalization import join_pages, normalize_text

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtractedDocument:
    """Plain text of a document together with page start offsets."""

    source_file: str
    text: str
    page_offsets: List[int] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.page_offsets)


class PDFExtractor:
    """Extract the text layer of a PDF page by page."""

    def extract(self, data: bytes) -> List[str]:
        reader = PdfReader(io.BytesIO(data))
        pages: List[str] = []
        for index, page in enumerate(reader.pages, start=1):
            try:
                text = page.extract_text() or ""
            except Exception as error:  # pragma: no cover - depends on PDF internals
                LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
                text = ""
            pages.append(text)
        return pages


class TextExtractor:
    """Extract text from plaintext documents."""

    def extract(self, data: bytes, encoding: str = "utf-8") -> List[str]:
        return [data.decode(encoding)]


class DocumentReader:
    """Read a filing from disk and return normalised plain text."""

    def __init__(self) -> None:
        self.pdf_extractor = PDFExtractor()
        self.text_extractor = TextExtractor()

    def read(self, path: str | Path) -> ExtractedDocument:
        path = Path(path)
        document_format = DocumentFormatDetector.detect(path.name)
        data = path.read_bytes()

        if document_format is DocumentFormat.PDF:
            raw_pages = self.pdf_extractor.extract(data)
        elif document_format is DocumentFormat.TXT:
            raw_pages = self.text_extractor.extract(data)
        else:  # pragma: no cover - enum is exhaustive
            raise ValueError(f"Unsupported document format: {document_format}")

        text, offsets = join_pages([normalize_text(page) for page in raw_pages])
        LOGGER.info("Read %s (%s, %s pages, %s chars)", path.name, document_format.value, len(offsets), len(text))
        return ExtractedDocument(source_file=path.name, text=text, page_offsets=offsets)
