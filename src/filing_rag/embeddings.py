"""Embedding gateway: text in, fixed-length vector out."""
from __future__ import annotations

import hashlib
import logging
import random
import time
from typing import Any, Callable, List, Optional, Sequence

import openai

from filing_rag.config import Settings
from filing_rag.errors import EmbeddingError, EmbeddingRateLimitError
from filing_rag.telemetry import emit_embeddings_event

LOGGER = logging.getLogger(__name__)

BACKEND_SENTENCE_TRANSFORMERS = "sentence-transformers"
BACKEND_OPENAI = "openai"
BACKEND_HASH = "hash"

DEFAULT_MODELS = {
    BACKEND_SENTENCE_TRANSFORMERS: "sentence-transformers/all-MiniLM-L6-v2",
    BACKEND_OPENAI: "text-embedding-3-small",
    BACKEND_HASH: "sha256-hash",
}
HASH_DIMENSION = 384

_OPENAI_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class EmbeddingModel:
    """Embedding backend wrapper with a fixed output dimension.

    Backend failures are raised as :class:`EmbeddingError`; rate-limit
    rejections from the OpenAI API as :class:`EmbeddingRateLimitError`.
    Retrying is left to the caller.
    """

    def __init__(
        self,
        backend: str = BACKEND_SENTENCE_TRANSFORMERS,
        model_name: str | None = None,
        *,
        device: str | None = None,
        dimension: int | None = None,
        api_key: str | None = None,
        client: Any = None,
    ) -> None:
        self.backend = backend
        self._model_name = model_name or DEFAULT_MODELS.get(backend, "")
        self._dimension: Optional[int] = dimension
        self._model: Any = None
        self._client: Any = client
        self._embedder: Callable[[Sequence[str]], List[List[float]]]

        if backend == BACKEND_HASH:
            self._dimension = dimension or HASH_DIMENSION
            if self._dimension <= 0:
                raise ValueError("dimension must be a positive integer")
            self._embedder = self._hash_embed_texts
        elif backend == BACKEND_SENTENCE_TRANSFORMERS:
            self._load_sentence_transformer(device)
            self._embedder = self._sentence_transformer_embed_texts
        elif backend == BACKEND_OPENAI:
            if self._client is None:
                try:
                    self._client = openai.OpenAI(api_key=api_key)
                except openai.OpenAIError as error:
                    raise EmbeddingError("Failed to initialise OpenAI client", cause=error) from error
            if self._dimension is None:
                self._dimension = _OPENAI_DIMENSIONS.get(self._model_name)
            self._embedder = self._openai_embed_texts
        else:
            raise ValueError(f"Unsupported embedding backend: {backend!r}")

        LOGGER.info("Embedding backend %s using model %s", backend, self._model_name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingModel":
        return cls(
            settings.embedding_backend,
            settings.embedding_model,
            device=settings.embedding_device,
            dimension=settings.embedding_dimension if settings.embedding_backend == BACKEND_HASH else None,
            api_key=settings.openai_api_key,
        )

    def _load_sentence_transformer(self, device: str | None) -> None:
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as error:
            raise EmbeddingError("sentence-transformers is not installed", cause=error) from error

        try:
            self._model = SentenceTransformer(self._model_name, device=device)
        except Exception as error:
            raise EmbeddingError(
                f"Failed to initialise sentence-transformers model '{self._model_name}'",
                cause=error,
            ) from error
        self._dimension = int(self._model.get_sentence_embedding_dimension())

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            # Unknown OpenAI model: learn the width from one call.
            self._dimension = len(self.embed("dimension probe"))
        return int(self._dimension)

    def embed(self, text: str) -> List[float]:
        """Return the embedding of a single text."""

        vectors = self.embed_texts([text])
        if not vectors:
            raise EmbeddingError("Embedding backend returned no vectors")
        return vectors[0]

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        started = time.perf_counter()
        try:
            embeddings = self._embedder(texts)
        except Exception as error:
            emit_embeddings_event(
                model=self._model_name,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(error)],
            )
            if isinstance(error, EmbeddingError):
                raise
            raise EmbeddingError(f"Embedding backend '{self.backend}' failed", cause=error) from error

        emit_embeddings_event(
            model=self._model_name,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return embeddings

    def _sentence_transformer_embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        embeddings = self._model.encode(
            list(texts),
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return embeddings.tolist()

    def _openai_embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        try:
            response = self._client.embeddings.create(model=self._model_name, input=list(texts))
        except openai.RateLimitError as error:
            raise EmbeddingRateLimitError("OpenAI embeddings rate limit reached", cause=error) from error
        except openai.OpenAIError as error:
            raise EmbeddingError("OpenAI embeddings request failed", cause=error) from error
        if not response.data:
            raise EmbeddingError("OpenAI embedding returned no data")
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]

    def _hash_embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        return [self._hash_embedding(str(text)) for text in texts]

    def _hash_embedding(self, text: str) -> List[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest(), "big")
        rng = random.Random(seed)
        vector = [rng.uniform(-1.0, 1.0) for _ in range(int(self._dimension or HASH_DIMENSION))]
        norm = sum(value * value for value in vector) ** 0.5 or 1.0
        return [value / norm for value in vector]
