"""High level ingestion pipeline entry point."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from filing_rag.config import Settings

from .chunking import ChunkingConfig, SectionChunker
from .extraction import FactExtractor
from .models import CompanyInfo, DocumentChunk

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PreparedDocument:
    """Company facts and unembedded chunks for one document."""

    source_file: str
    company_info: CompanyInfo
    chunks: List[DocumentChunk] = field(default_factory=list)


class IngestPipeline:
    """Pipeline orchestrating fact extraction and section chunking."""

    def __init__(
        self,
        config: Optional[ChunkingConfig] = None,
        *,
        extractor: Optional[FactExtractor] = None,
    ) -> None:
        self.config = config or ChunkingConfig()
        self.extractor = extractor or FactExtractor()
        self.chunker = SectionChunker(self.config)

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestPipeline":
        return cls(
            ChunkingConfig(
                max_chunk_chars=settings.max_chunk_chars,
                min_section_chars=settings.min_section_chars,
            )
        )

    def prepare(
        self,
        text: str,
        source_file: str,
        page_offsets: Optional[Sequence[int]] = None,
    ) -> PreparedDocument:
        """Extract company facts from *text* and split it into chunks."""

        company_info = self.extractor.extract(text)
        LOGGER.info(
            "Extracted company %s (%s) from %s",
            company_info.name or "<unknown>",
            company_info.ticker or "<no ticker>",
            source_file,
        )
        chunks = self.chunker.chunk(text, company_info, source_file, page_offsets)
        LOGGER.info("Generated %s chunks for file %s", len(chunks), source_file)
        return PreparedDocument(source_file=source_file, company_info=company_info, chunks=chunks)
