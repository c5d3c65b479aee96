"""Text normalisation for text extracted from filings."""
from __future__ import annotations

import re
import unicodedata
from typing import List, Sequence, Tuple

_WHITESPACE_RE = re.compile(r"[ \t\f\v]+")
_MULTIPLE_NEWLINES_RE = re.compile(r"\n{3,}")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
# Extraction labels such as "Shareholders' Equity" use ASCII quotes.
_QUOTE_TRANSLATION = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})


def normalize_text(text: str) -> str:
    """Normalise whitespace, quotes and Unicode compatibility forms."""

    normalized = unicodedata.normalize("NFKC", text)
    normalized = normalized.translate(_QUOTE_TRANSLATION)
    normalized = normalized.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _TRAILING_SPACE_RE.sub("\n", normalized)
    normalized = _MULTIPLE_NEWLINES_RE.sub("\n\n", normalized)
    return normalized.strip()


def join_pages(pages: Sequence[str], separator: str = "\n\n") -> Tuple[str, List[int]]:
    """Join page texts into one document and return each page's start offset."""

    offsets: List[int] = []
    parts: List[str] = []
    position = 0
    for index, page in enumerate(pages):
        if index:
            parts.append(separator)
            position += len(separator)
        offsets.append(position)
        parts.append(page)
        position += len(page)
    return "".join(parts), offsets
