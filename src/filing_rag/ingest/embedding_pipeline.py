"""Pipeline for computing chunk embeddings under the rate-limit policy."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from filing_rag.embeddings import EmbeddingModel

from .models import DocumentChunk
from .pacing import RateLimitPolicy

LOGGER = logging.getLogger(__name__)


class ChunkEmbeddingPipeline:
    """Embed prepared chunks one at a time, in document order."""

    def __init__(self, embedder: EmbeddingModel, policy: Optional[RateLimitPolicy] = None) -> None:
        self.embedder = embedder
        self.policy = policy or RateLimitPolicy()

    def run(self, chunks: Sequence[DocumentChunk]) -> List[DocumentChunk]:
        """Set the vector of every chunk and return them.

        The first embedding failure aborts the run; chunks embedded before it
        keep their vectors but nothing is persisted here.
        """

        total = len(chunks)
        for position, chunk in enumerate(chunks, start=1):
            chunk.vector = self.policy.call(
                lambda content=chunk.content: self.embedder.embed(content),
                label=chunk.id,
            )
            LOGGER.debug("Embedded chunk %s (%s/%s)", chunk.id, position, total)
        return list(chunks)
