"""Pacing of calls to the rate-limited embedding service."""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from filing_rag.config import Settings
from filing_rag.errors import EmbeddingRateLimitError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RateLimitPolicy:
    """Courtesy delays between calls and backoff with jitter on rate limits.

    ``call_delay`` is slept before every call except the first one,
    ``document_delay`` between documents.  Only
    :class:`~filing_rag.errors.EmbeddingRateLimitError` is retried; every
    other error propagates on the first attempt.
    """

    call_delay: float = 0.1
    document_delay: float = 1.0
    max_retries: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    jitter: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    rng: random.Random = field(default_factory=random.Random, repr=False)
    _calls: int = field(default=0, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: object) -> "RateLimitPolicy":
        values = {
            "call_delay": settings.call_delay,
            "document_delay": settings.document_delay,
            "max_retries": settings.max_retries,
            "initial_backoff": settings.initial_backoff,
            "max_backoff": settings.max_backoff,
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]

    @classmethod
    def disabled(cls) -> "RateLimitPolicy":
        """Policy without any delay, for tests and local backends."""

        return cls(call_delay=0.0, document_delay=0.0, initial_backoff=0.0, max_backoff=0.0, jitter=0.0)

    def backoff_delay(self, attempt: int) -> float:
        delay = self.initial_backoff * (2**attempt)
        if self.jitter > 0:
            delay += self.rng.uniform(0, self.jitter)
        return min(delay, self.max_backoff)

    def call(self, func: Callable[[], T], *, label: Optional[str] = None) -> T:
        """Run *func* after the courtesy delay, retrying rate-limit errors."""

        if self._calls and self.call_delay > 0:
            self.sleep(self.call_delay)
        self._calls += 1

        attempt = 0
        while True:
            try:
                return func()
            except EmbeddingRateLimitError:
                if attempt >= self.max_retries:
                    raise
                delay = self.backoff_delay(attempt)
                attempt += 1
                LOGGER.warning(
                    "Rate limited%s; retrying in %.1fs (attempt %s/%s)",
                    f" on {label}" if label else "",
                    delay,
                    attempt,
                    self.max_retries,
                )
                if delay > 0:
                    self.sleep(delay)

    def pause_between_documents(self) -> None:
        if self.document_delay > 0:
            LOGGER.info("Waiting %.1fs before processing next document", self.document_delay)
            self.sleep(self.document_delay)
