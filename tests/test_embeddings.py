from __future__ import annotations

import math
from types import SimpleNamespace

import httpx
import openai
import pytest

from filing_rag.config import Settings
from filing_rag.embeddings import EmbeddingModel
from filing_rag.errors import EmbeddingError, EmbeddingRateLimitError


class FakeEmbeddingsAPI:
    def __init__(self, error: Exception | None = None, dimension: int = 3) -> None:
        self.error = error
        self.dimension = dimension
        self.requests: list[dict] = []

    def create(self, *, model: str, input: list[str]):
        self.requests.append({"model": model, "input": input})
        if self.error is not None:
            raise self.error
        data = [
            SimpleNamespace(index=index, embedding=[float(index + 1)] * self.dimension)
            for index in reversed(range(len(input)))
        ]
        return SimpleNamespace(data=data)


def _openai_model(api: FakeEmbeddingsAPI) -> EmbeddingModel:
    return EmbeddingModel("openai", client=SimpleNamespace(embeddings=api))


def _http_response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))


def test_hash_backend_is_deterministic_and_normalised() -> None:
    model = EmbeddingModel("hash", dimension=16)

    first = model.embed("Revenue grew strongly")
    second = model.embed("Revenue grew strongly")

    assert first == second
    assert len(first) == model.dimension == 16
    assert math.isclose(math.sqrt(sum(value * value for value in first)), 1.0, rel_tol=1e-9)
    assert model.embed("Something else") != first


def test_hash_backend_from_settings_uses_configured_dimension() -> None:
    model = EmbeddingModel.from_settings(Settings(embedding_backend="hash", embedding_dimension=48))

    assert model.dimension == 48
    assert model.model_name == "sha256-hash"


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(ValueError):
        EmbeddingModel("word2vec")


def test_openai_backend_orders_vectors_by_index() -> None:
    api = FakeEmbeddingsAPI()
    model = _openai_model(api)

    vectors = model.embed_texts(["first", "second"])

    assert vectors == [[1.0, 1.0, 1.0], [2.0, 2.0, 2.0]]
    assert api.requests == [{"model": "text-embedding-3-small", "input": ["first", "second"]}]
    assert model.dimension == 1536


def test_openai_rate_limit_is_reported_as_rate_limit_error() -> None:
    error = openai.RateLimitError("slow down", response=_http_response(429), body=None)
    model = _openai_model(FakeEmbeddingsAPI(error=error))

    with pytest.raises(EmbeddingRateLimitError) as excinfo:
        model.embed("anything")

    assert excinfo.value.__cause__ is error


def test_openai_failures_are_reported_as_embedding_error() -> None:
    error = openai.InternalServerError("boom", response=_http_response(500), body=None)
    model = _openai_model(FakeEmbeddingsAPI(error=error))

    with pytest.raises(EmbeddingError) as excinfo:
        model.embed("anything")

    assert not isinstance(excinfo.value, EmbeddingRateLimitError)


def test_unexpected_backend_errors_are_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    model = EmbeddingModel("hash", dimension=4)

    def explode(texts):
        raise KeyError("broken")

    monkeypatch.setattr(model, "_embedder", explode)

    with pytest.raises(EmbeddingError) as excinfo:
        model.embed_texts(["x"])

    assert isinstance(excinfo.value.__cause__, KeyError)


def test_empty_batch_returns_no_vectors() -> None:
    assert EmbeddingModel("hash", dimension=4).embed_texts([]) == []
