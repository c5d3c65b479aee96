from __future__ import annotations

import random

import pytest

from filing_rag.config import Settings
from filing_rag.errors import EmbeddingError, EmbeddingRateLimitError
from filing_rag.ingest.pacing import RateLimitPolicy


def _policy(sleeps: list[float], **overrides) -> RateLimitPolicy:
    values = dict(call_delay=0.1, document_delay=1.0, jitter=0.0, sleep=sleeps.append)
    values.update(overrides)
    return RateLimitPolicy(**values)


def test_courtesy_delay_is_applied_between_calls_only() -> None:
    sleeps: list[float] = []
    policy = _policy(sleeps)

    assert [policy.call(lambda value=value: value) for value in range(3)] == [0, 1, 2]
    assert sleeps == [0.1, 0.1]


def test_rate_limit_errors_are_retried_with_exponential_backoff() -> None:
    sleeps: list[float] = []
    policy = _policy(sleeps, call_delay=0.0)
    attempts = []

    def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise EmbeddingRateLimitError("429")
        return "ok"

    assert policy.call(flaky) == "ok"
    assert len(attempts) == 3
    assert sleeps == [1.0, 2.0]


def test_rate_limit_retries_are_bounded() -> None:
    sleeps: list[float] = []
    policy = _policy(sleeps, call_delay=0.0, max_retries=2)
    attempts = []

    def always_limited() -> None:
        attempts.append(1)
        raise EmbeddingRateLimitError("429")

    with pytest.raises(EmbeddingRateLimitError):
        policy.call(always_limited)
    assert len(attempts) == 3


def test_other_embedding_errors_propagate_immediately() -> None:
    sleeps: list[float] = []
    policy = _policy(sleeps, call_delay=0.0)
    attempts = []

    def broken() -> None:
        attempts.append(1)
        raise EmbeddingError("bad request")

    with pytest.raises(EmbeddingError):
        policy.call(broken)
    assert len(attempts) == 1
    assert sleeps == []


def test_backoff_adds_jitter_and_is_capped() -> None:
    policy = RateLimitPolicy(initial_backoff=1.0, max_backoff=5.0, jitter=1.0, rng=random.Random(7))

    first = policy.backoff_delay(0)
    assert 1.0 <= first <= 2.0
    assert policy.backoff_delay(10) == 5.0


def test_document_pause_and_disabled_policy() -> None:
    sleeps: list[float] = []
    _policy(sleeps).pause_between_documents()
    assert sleeps == [1.0]

    disabled = RateLimitPolicy.disabled()
    disabled.sleep = sleeps.append
    disabled.call(lambda: None)
    disabled.call(lambda: None)
    disabled.pause_between_documents()
    assert sleeps == [1.0]


def test_policy_from_settings() -> None:
    settings = Settings(call_delay=0.5, document_delay=2.0, max_retries=5, initial_backoff=0.25, max_backoff=4.0)

    policy = RateLimitPolicy.from_settings(settings, jitter=0.0)

    assert (policy.call_delay, policy.document_delay, policy.max_retries) == (0.5, 2.0, 5)
    assert (policy.initial_backoff, policy.max_backoff, policy.jitter) == (0.25, 4.0, 0.0)
