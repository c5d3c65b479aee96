from __future__ import annotations

import pytest
from conftest import RecordingEmbedder, make_filing
from fastapi.testclient import TestClient

from filing_rag.config import Settings
from filing_rag.main import create_app, create_configured_app
from filing_rag.services.ingestion import IngestionService
from filing_rag.vectorstore import ChunkTable, InMemoryVectorStore, TableNotFoundError


@pytest.fixture
def ingested_table(memory_table: ChunkTable, no_pacing) -> ChunkTable:
    service = IngestionService(memory_table, RecordingEmbedder(), policy=no_pacing)
    service.ingest_text(make_filing(), "acme.txt")
    service.ingest_text(make_filing("ABCD Holdings Inc", "ABCD", revenue="75,000"), "abcd.txt")
    return memory_table


@pytest.fixture
def client(ingested_table: ChunkTable):
    app = create_app(Settings(vector_store="memory"), table=ingested_table, embedder=RecordingEmbedder())
    with TestClient(app) as test_client:
        yield test_client


def test_health_reports_database_connection(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["status"] == "healthy"
    assert payload["database_connected"] is True
    assert payload["timestamp"].endswith("Z")


def test_query_returns_results_with_meta(client: TestClient) -> None:
    response = client.post("/api/query", json={"query": "steel prices", "limit": 3, "company_filter": "ABCD"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert len(payload["data"]) == 3
    assert all(item["ticker_symbol"] == "ABCD" for item in payload["data"])
    assert set(payload["data"][0]) == {
        "id", "company_name", "ticker_symbol", "content", "chunk_type", "metadata", "similarity_score"
    }
    assert payload["meta"]["query"] == "steel prices"
    assert payload["meta"]["results_count"] == 3
    assert payload["meta"]["processing_time_ms"] >= 0


def test_query_with_chunk_type_filter(client: TestClient) -> None:
    response = client.post("/api/query", json={"query": "risks", "chunk_type_filter": "risk_factors"})

    assert response.status_code == 200
    assert {item["chunk_type"] for item in response.json()["data"]} == {"risk_factors"}


@pytest.mark.parametrize(
    "body",
    [
        {"query": "revenue", "limit": 0},
        {"query": "revenue", "limit": 101},
        {"query": ""},
        {"limit": 5},
        {"query": "revenue", "chunk_type_filter": "press_release"},
    ],
)
def test_invalid_query_requests_return_400(client: TestClient, body: dict) -> None:
    response = client.post("/api/query", json=body)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"]


def test_company_financials(client: TestClient) -> None:
    response = client.post("/api/company/financials", json={"company_name": "ABCD"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["company_name"] == "ABCD"
    assert data["financial_summary"]["revenue"] == "$75,000"
    assert data["summary"].startswith("Revenue: $75,000")
    assert isinstance(data["financial_chunks"], int)
    assert data["context"] is None


def test_company_financials_with_context(client: TestClient) -> None:
    response = client.post("/api/company/financials", json={"company_name": "ACME", "include_context": True})

    data = response.json()["data"]
    assert isinstance(data["financial_chunks"], list)
    assert data["context"] == data["financial_chunks"]
    assert all(chunk["ticker_symbol"] == "ACME" for chunk in data["context"])


def test_list_companies(client: TestClient) -> None:
    response = client.get("/api/companies")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_count"] == 2
    assert {company["ticker_symbol"] for company in data["companies"]} == {"ACME", "ABCD"}


def test_company_by_ticker(client: TestClient) -> None:
    response = client.get("/api/company/acme", params={"limit": 2})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["ticker"] == "acme"
    assert data["total_chunks"] == 2
    assert all("similarity_score" not in chunk for chunk in data["chunks"])


def test_unknown_ticker_returns_404(client: TestClient) -> None:
    response = client.get("/api/company/NOPE")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "No data found for company with ticker: NOPE"}


def test_stats(client: TestClient) -> None:
    data = client.get("/api/stats").json()["data"]

    assert data["total_chunks"] == 8
    assert data["unique_companies"] == 2
    assert data["chunk_types"]["financial_statements"] == 2
    assert data["companies"] == {"ACME": 4, "ABCD": 4}


def test_storage_failure_returns_503(client: TestClient, ingested_table: ChunkTable, monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise OSError("disk gone")

    monkeypatch.setattr(ingested_table.store, "scan", broken)

    response = client.get("/api/stats")

    assert response.status_code == 503
    assert response.json()["success"] is False


def test_unexpected_failure_returns_500(client: TestClient, monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise KeyError("boom")

    monkeypatch.setattr(client.app.state.query_engine, "search", broken)

    response = client.post("/api/query", json={"query": "revenue"})

    assert response.status_code == 500
    payload = response.json()
    assert payload["error"] == "Internal server error during query processing"
    assert "processing_time_ms" in payload["meta"]


def test_requests_before_startup_return_503(ingested_table: ChunkTable) -> None:
    app = create_app(Settings(vector_store="memory"), table=ingested_table, embedder=RecordingEmbedder())
    client = TestClient(app)

    assert client.get("/health").json()["database_connected"] is False
    response = client.get("/api/stats")
    assert response.status_code == 503
    assert response.json() == {"success": False, "error": "Database not initialized"}


def test_missing_table_is_fatal_at_startup() -> None:
    app = create_app(
        Settings(vector_store="memory"),
        table=ChunkTable(InMemoryVectorStore(), "company_documents"),
        embedder=RecordingEmbedder(),
    )

    with pytest.raises(TableNotFoundError):
        with TestClient(app):
            pass


def test_configured_factory_reads_settings_from_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("VECTOR_STORE", "memory")
    monkeypatch.setenv("VECTOR_TABLE_NAME", "filings")
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))

    app = create_configured_app()

    assert app.state.settings.table_name == "filings"
    assert (tmp_path / "logs").is_dir()
    assert app.state.query_engine is None
