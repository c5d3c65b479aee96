from __future__ import annotations

import io
from pathlib import Path

import pytest
from PyPDF2 import PdfWriter

from filing_rag.ingest.format_detection import DocumentFormat, DocumentFormatDetector
from filing_rag.ingest.normalization import join_pages, normalize_text
from filing_rag.ingest.reader import DocumentReader


def test_normalize_text_collapses_whitespace_and_ascii_quotes() -> None:
    raw = "Shareholders’ Equity\t\t$80,000  \r\n\r\n\r\n\r\nNet Income  $9,000   "

    assert normalize_text(raw) == "Shareholders' Equity $80,000\n\nNet Income $9,000"


def test_join_pages_reports_page_start_offsets() -> None:
    text, offsets = join_pages(["first", "second", "third"])

    assert text == "first\n\nsecond\n\nthird"
    assert offsets == [0, 7, 15]
    assert text[offsets[2]:] == "third"


def test_format_detection() -> None:
    assert DocumentFormatDetector.detect("report.PDF") is DocumentFormat.PDF
    assert DocumentFormatDetector.detect("upload", mime_type="text/plain") is DocumentFormat.TXT
    assert DocumentFormatDetector.is_supported(Path("10k.txt"))
    assert not DocumentFormatDetector.is_supported(Path("notes.md"))
    with pytest.raises(ValueError):
        DocumentFormatDetector.detect("slides.pptx")


def test_reader_returns_normalised_text_documents(tmp_path: Path) -> None:
    path = tmp_path / "acme.txt"
    path.write_text("Ticker Symbol:   ACME\r\nRevenue\t$50,000\n", encoding="utf-8")

    document = DocumentReader().read(path)

    assert document.source_file == "acme.txt"
    assert document.text == "Ticker Symbol: ACME\nRevenue $50,000"
    assert document.page_offsets == [0]


def test_reader_extracts_one_entry_per_pdf_page(tmp_path: Path) -> None:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    path = tmp_path / "blank.pdf"
    path.write_bytes(buffer.getvalue())

    document = DocumentReader().read(path)

    assert document.page_count == 2
    assert document.text.strip() == ""
