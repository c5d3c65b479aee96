"""Section-aware chunking of filings into embedding-friendly units."""
from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .models import ChunkMetadata, ChunkType, CompanyInfo, DocumentChunk

LOGGER = logging.getLogger(__name__)

_SECTION_SPLIT_RE = re.compile(r"(?=PART\s+[IVX]+|Item\s+\d+)")
_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)|[.!?]+")

# Checked in order; the first marker contained in a section decides its type.
_SECTION_RULES: Tuple[Tuple[str, ChunkType, str], ...] = (
    ("Item 1. Business", ChunkType.BUSINESS, "Business Overview"),
    ("Item 2. Risk Factors", ChunkType.RISK_FACTORS, "Risk Factors"),
    ("Financial Statements", ChunkType.FINANCIAL_STATEMENTS, "Financial Statements"),
)

UNKNOWN_TICKER = "unknown"


@dataclass(slots=True)
class ChunkingConfig:
    max_chunk_chars: int = 1000
    min_section_chars: int = 100


@dataclass(slots=True)
class Section:
    index: int
    text: str
    char_offset: int


def classify_section(section: str) -> Tuple[ChunkType, Optional[str]]:
    """Return the chunk type and display name for a section."""

    for marker, chunk_type, name in _SECTION_RULES:
        if marker in section:
            return chunk_type, name
    return ChunkType.GENERAL, None


def split_sentences(text: str) -> List[str]:
    """Split *text* at ``.``/``!``/``?`` runs, keeping the terminators."""

    return [match.group(0) for match in _SENTENCE_RE.finditer(text) if match.group(0)]


def pack_sentences(sentences: Sequence[str], max_chars: int) -> Iterator[str]:
    """Greedily pack sentences into buffers of at most *max_chars* characters.

    A sentence is never split, so a single sentence longer than the cap is
    emitted on its own.
    """

    buffer = ""
    for sentence in sentences:
        if buffer and len(buffer) + len(sentence) > max_chars:
            if buffer.strip():
                yield buffer.strip()
            buffer = sentence
        else:
            buffer += sentence
    if buffer.strip():
        yield buffer.strip()


class SectionChunker:
    """Split filing text into typed chunks along section boundaries."""

    def __init__(self, config: Optional[ChunkingConfig] = None) -> None:
        self.config = config or ChunkingConfig()

    def split_sections(self, text: str) -> Iterator[Section]:
        """Yield sections long enough to be worth indexing.

        Section indices count every split part, including discarded ones, so
        identifiers stay stable when noise fragments change length.
        """

        offset = 0
        for index, part in enumerate(_SECTION_SPLIT_RE.split(text)):
            start = offset
            offset += len(part)
            stripped = part.strip()
            if len(stripped) < self.config.min_section_chars:
                continue
            yield Section(index=index, text=stripped, char_offset=start + (len(part) - len(part.lstrip())))

    def chunk(
        self,
        text: str,
        company_info: CompanyInfo,
        source_file: str,
        page_offsets: Optional[Sequence[int]] = None,
    ) -> List[DocumentChunk]:
        """Return the ordered chunks for a document, with empty vectors."""

        ticker = company_info.ticker or ""
        company_name = company_info.name or ""
        prefix = ticker or UNKNOWN_TICKER
        max_chars = max(self.config.max_chunk_chars, 1)

        chunks: List[DocumentChunk] = []
        for section in self.split_sections(text):
            chunk_type, section_name = classify_section(section.text)
            page_number = _page_for_offset(page_offsets, section.char_offset)
            sentences = split_sentences(section.text)
            for chunk_index, content in enumerate(pack_sentences(sentences, max_chars)):
                chunks.append(
                    DocumentChunk(
                        id=f"{prefix}_{section.index}_{chunk_index}",
                        company_name=company_name,
                        ticker_symbol=ticker,
                        content=content,
                        chunk_type=chunk_type,
                        metadata=ChunkMetadata(
                            source_file=source_file,
                            page_number=page_number,
                            section=section_name,
                        ),
                    )
                )
        LOGGER.debug("Chunked %s into %s chunks", source_file, len(chunks))
        return chunks


def _page_for_offset(page_offsets: Optional[Sequence[int]], offset: int) -> Optional[int]:
    if not page_offsets:
        return None
    return max(bisect.bisect_right(page_offsets, offset), 1)
